# services/api/models/services.py

from __future__ import annotations

import asyncio
import logging
import math
import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from adapters.base import StorageAdapter
from core.errors import Conflict, NotFound, ValidationError
from core.locks import KeyedLock
from core.notifications import (
    REASON_DISABLED,
    DeliveryResult,
    EmailNotifier,
    build_reminder_email,
    build_request_email,
)
from core.reconciler import TaggedRow, from_combined_view, to_combined_view, unknown_departments
from core.reminders import is_reminder_due, reminder_interval
from core.validation import (
    validate_columns,
    validate_department,
    validate_rows,
)

from . import STATUS_COMPLETED, STATUS_IN_PROGRESS, Request, Submission
from .converters import request_from_record, request_to_record

logger = logging.getLogger(__name__)

# Fields a caller may change through update_request().
# id / status / createdAt / version are server-owned.
UPDATABLE_FIELDS = (
    "title",
    "format",
    "instructions",
    "departments",
    "emails",
    "deadline",
    "emailSubject",
    "emailBody",
    "reminders",
    "columns",
    "initialRows",
    "submissions",
)

_REQ_ID_RE = re.compile(r"^REQ-(\d+)$")
_CREATE_KEY = "__create__"


def _iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _validated(record: Mapping[str, Any]) -> Request:
    """Build a Request, turning pydantic errors into our ValidationError."""
    try:
        return request_from_record(dict(record))
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ValidationError(problems or str(e)) from e


class RequestService:
    """
    Business rules for data requests:
      - create / read / list
      - submissions, status, columns, partial updates
      - combined view round trip (via core.reconciler)
      - progress + dashboard counts
      - request / reminder notifications (best-effort, never raise)

    Every write is read-modify-write under a per-id lock, and the version that
    was read is handed to the store so a writer in another process is
    detected (Conflict) instead of silently overwritten.
    """

    def __init__(
        self,
        storage: StorageAdapter,
        notifier: Optional[EmailNotifier] = None,
        public_base_url: str = "",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.storage = storage
        self.notifier = notifier
        self.public_base_url = public_base_url
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._locks = KeyedLock()

    # ========== helpers ==========

    def _now(self) -> datetime:
        return self._clock()

    def _now_iso(self) -> str:
        return _iso(self._now())

    def _load(self, request_id: str) -> Request:
        record = self.storage.get_request(request_id)
        if record is None:
            raise NotFound(f"Request {request_id} not found")
        return request_from_record(record)

    def _mutate(self, request_id: str, change: Callable[[Request], Optional[Request]]) -> Request:
        """
        Apply `change` to the stored request and write it back.

        `change` returns the new Request, or None for "nothing to do"
        (no write happens in that case).
        """
        with self._locks.hold(request_id):
            current = self._load(request_id)
            updated = change(current)
            if updated is None:
                return current

            updated = updated.model_copy(update={"id": request_id, "updated_at": self._now_iso()})
            stored = self.storage.replace_request(
                request_id,
                request_to_record(updated),
                expected_version=current.version,
            )
            if stored is None:
                raise NotFound(f"Request {request_id} not found")
            return request_from_record(stored)

    def next_request_id(self) -> str:
        """REQ-NNN, one past the highest existing REQ- number."""
        highest = 0
        for record in self.storage.list_requests():
            m = _REQ_ID_RE.match(str(record.get("id", "")))
            if m:
                highest = max(highest, int(m.group(1)))
        return f"REQ-{highest + 1:03d}"

    # ========== Requests ==========

    def create_request(self, payload: Mapping[str, Any]) -> Request:
        """
        Create a request. The caller may propose an `id`; reusing an existing
        one fails with Conflict. submissions/status/createdAt are always
        server-assigned.
        """
        server_owned = ("submissions", "status", "createdAt", "updatedAt", "version")
        data = {k: v for k, v in dict(payload).items() if k not in server_owned}

        with self._locks.hold(_CREATE_KEY):
            proposed = data.pop("id", None)
            if proposed is not None and (not isinstance(proposed, str) or not proposed.strip()):
                raise ValidationError("id must be a non-empty string when provided")
            request_id = proposed.strip() if proposed else self.next_request_id()

            now = self._now_iso()
            request = _validated(
                {
                    **data,
                    "id": request_id,
                    "submissions": [],
                    "status": STATUS_IN_PROGRESS,
                    "createdAt": now,
                    "updatedAt": now,
                }
            )
            stored = self.storage.insert_request(request_to_record(request))

        logger.info(f"✓ Request {request_id} created ({len(request.departments)} departments)")
        return request_from_record(stored)

    def get_request(self, request_id: str) -> Request:
        return self._load(request_id)

    def list_requests(self) -> List[Request]:
        return [request_from_record(r) for r in self.storage.list_requests()]

    def update_request(self, request_id: str, updates: Mapping[str, Any]) -> Request:
        """
        Partial update. Only UPDATABLE_FIELDS are taken from `updates`;
        the id always comes from `request_id`.
        """
        changes = {k: v for k, v in dict(updates).items() if k in UPDATABLE_FIELDS}
        ignored = sorted(set(updates) - set(changes))
        if ignored:
            logger.debug(f"update_request({request_id}) ignoring fields: {ignored}")

        if "columns" in changes:
            changes["columns"] = validate_columns(changes["columns"])
        if "initialRows" in changes:
            changes["initialRows"] = validate_rows(changes["initialRows"])

        def apply(current: Request) -> Optional[Request]:
            if not changes:
                return None
            record = request_to_record(current)
            now = self._now_iso()

            if "reminders" in changes:
                merged = dict(record.get("reminders") or {})
                merged.update(dict(changes.pop("reminders") or {}))
                record["reminders"] = merged

            if "submissions" in changes:
                subs = []
                for raw in changes.pop("submissions") or []:
                    if not isinstance(raw, Mapping):
                        raise ValidationError("Each submission must be an object")
                    sub = dict(raw)
                    sub["department"] = validate_department(sub.get("department"))
                    sub["rows"] = validate_rows(sub.get("rows"))
                    if not sub.get("createdAt"):
                        sub["createdAt"] = now
                    subs.append(sub)
                record["submissions"] = subs

            record.update(changes)
            return _validated(record)

        updated = self._mutate(request_id, apply)
        logger.info(f"✓ Request {request_id} updated")
        return updated

    # ========== Submissions ==========

    def add_submission(self, request_id: str, payload: Mapping[str, Any]) -> Request:
        """Append one department submission with a server-stamped createdAt."""
        department = validate_department(payload.get("department"))
        rows = validate_rows(payload.get("rows"))
        completed = bool(payload.get("completed", False))

        def apply(current: Request) -> Request:
            if current.departments and department not in current.departments:
                logger.warning(
                    f"⚠️ Submission for {request_id} from '{department}', "
                    f"which is not one of {current.departments}"
                )
            sub = Submission(
                department=department,
                rows=rows,
                completed=completed,
                created_at=self._now_iso(),
            )
            return current.model_copy(update={"submissions": [*current.submissions, sub]})

        updated = self._mutate(request_id, apply)
        logger.info(f"✓ Submission added to {request_id} by '{department}' ({len(rows)} rows)")
        return updated

    # ========== Status ==========

    def mark_completed(self, request_id: str) -> Request:
        """In Progress -> Completed. Calling it again is a no-op."""

        def apply(current: Request) -> Optional[Request]:
            if current.is_completed:
                return None
            return current.model_copy(update={"status": STATUS_COMPLETED})

        return self._mutate(request_id, apply)

    def update_status(self, request_id: str, status: Any) -> Request:
        """
        One-way state machine: only In Progress -> Completed is allowed.
        Re-sending the current status is a no-op.
        """
        value = str(status or "").strip()
        if value == STATUS_COMPLETED:
            return self.mark_completed(request_id)
        if value == STATUS_IN_PROGRESS:
            current = self._load(request_id)
            if current.is_completed:
                raise ValidationError(f"Request {request_id} is completed and cannot be reopened")
            return current
        raise ValidationError(
            f"status must be '{STATUS_IN_PROGRESS}' or '{STATUS_COMPLETED}', got {status!r}"
        )

    # ========== Columns & combined view ==========

    def update_columns(self, request_id: str, columns: Iterable[Any]) -> Request:
        """
        Replace the column list. Row data is not touched: keys of removed
        columns stay in stored rows until a later save overwrites them.
        """
        new_columns = validate_columns(columns)
        return self._mutate(
            request_id,
            lambda current: current.model_copy(update={"columns": new_columns}),
        )

    def get_combined_view(self, request_id: str) -> List[TaggedRow]:
        return to_combined_view(self._load(request_id))

    def save_combined_view(self, request_id: str, rows: Iterable[Any]) -> Request:
        """
        Write an edited combined view back into initialRows + submissions.
        Rows tagged with a department that has no submission yet get a new
        submission for that department.
        """
        tagged = [r if isinstance(r, TaggedRow) else TaggedRow.from_api(r) for r in rows]

        def apply(current: Request) -> Request:
            new_depts = unknown_departments(current, tagged)
            if new_depts:
                logger.info(f"Creating submissions for {new_depts} on {request_id} from combined view")
            initial_rows, submissions = from_combined_view(current, tagged, now=self._now_iso())
            return current.model_copy(
                update={"initial_rows": initial_rows, "submissions": submissions}
            )

        updated = self._mutate(request_id, apply)
        logger.info(f"✓ Combined view saved for {request_id} ({len(tagged)} rows)")
        return updated

    # ========== Progress ==========

    @staticmethod
    def progress_for(request: Request) -> Dict[str, Any]:
        """
        Completion = listed departments whose submission is flagged completed,
        over the number of listed departments.
        """
        departments = request.departments
        submitted = [d for d in departments if any(s.department == d for s in request.submissions)]
        completed = [
            d for d in departments
            if any(s.department == d and s.completed for s in request.submissions)
        ]
        total = len(departments)
        percent = math.floor(len(completed) / total * 100 + 0.5) if total else 0
        return {
            "requestId": request.id,
            "status": request.status,
            "totalDepartments": total,
            "submittedDepartments": submitted,
            "completedDepartments": completed,
            "pendingDepartments": [d for d in departments if d not in completed],
            "progress": percent,
        }

    def get_progress(self, request_id: str) -> Dict[str, Any]:
        return self.progress_for(self._load(request_id))

    def dashboard_summary(self) -> Dict[str, int]:
        requests = self.list_requests()
        completed = sum(1 for r in requests if r.is_completed)
        return {
            "total": len(requests),
            "pending": len(requests) - completed,
            "completed": completed,
            "remindersActive": sum(1 for r in requests if r.reminders.enabled),
        }

    # ========== Notifications ==========

    def notification_status(self, request: Request) -> str:
        """
        What will happen to the creation email: 'queued', or the reason it
        is skipped (disabled / no-recipients / missing-config).
        """
        if self.notifier is None:
            return REASON_DISABLED
        return self.notifier.precheck(request.emails) or "queued"

    async def notify_request_created(self, request: Request) -> DeliveryResult:
        """Send the creation email. Failures are logged and returned, never raised."""
        if self.notifier is None:
            return DeliveryResult(delivered=False, reason=REASON_DISABLED)

        result = await self.notifier.send_notification(
            build_request_email(request, self.public_base_url)
        )
        if result.delivered:
            logger.info(f"✓ Request email for {request.id} delivered to {len(request.emails)} recipient(s)")
        else:
            logger.warning(f"⚠️ Request email for {request.id} not delivered: {result.reason}")
        return result

    def _record_reminder_sent(self, request_id: str, stamp: str) -> Request:
        return self._mutate(
            request_id,
            lambda current: current.model_copy(
                update={"reminders": current.reminders.model_copy(update={"last_sent_at": stamp})}
            ),
        )

    async def send_due_reminders(self, now: Optional[datetime] = None) -> int:
        """
        Send a reminder for every request that is due and record lastSentAt.

        Returns:
            Number of reminders delivered.
        """
        if self.notifier is None:
            return 0

        now = now or self._now()
        sent = 0
        requests = await asyncio.to_thread(self.list_requests)
        for request in requests:
            if not is_reminder_due(request, now):
                continue

            next_at = now + reminder_interval(request.reminders.frequency)
            result = await self.notifier.send_notification(
                build_reminder_email(request, self.public_base_url, next_at.date().isoformat())
            )
            if not result.delivered:
                logger.warning(f"⚠️ Reminder for {request.id} not delivered: {result.reason}")
                continue

            try:
                await asyncio.to_thread(self._record_reminder_sent, request.id, _iso(now))
            except (NotFound, Conflict) as e:
                logger.warning(f"⚠️ Reminder sent for {request.id} but lastSentAt not saved: {e.detail}")
            sent += 1

        if sent:
            logger.info(f"⏰ {sent} reminder(s) sent")
        return sent
