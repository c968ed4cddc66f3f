# services/api/core/reconciler.py
"""
Conversion between normalized storage and the combined view.

Storage keeps baseline rows on the request (`initialRows`) and one row list per
submission. The combined view is a single flat list of rows, each tagged with
the department it came from (or INITIAL_TAG for baseline rows). The UI renders
and edits that list; saving it goes back through `from_combined_view`.

Ordering of the combined view:
  1. non-blank initialRows, in stored order
  2. submission rows, submission by submission, each in stored order
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from core.errors import ValidationError
from core.validation import (
    INITIAL_TAG,
    LEGACY_TAG_KEY,
    TAG_KEY,
    is_blank_row,
    validate_row,
)
from models import Request, Row, Submission


def _utc_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


@dataclass
class TaggedRow:
    """One row of the combined view."""

    tag: str
    row: Row = field(default_factory=dict)

    @property
    def is_initial(self) -> bool:
        return self.tag == INITIAL_TAG

    # ------------ API layer ------------

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> "TaggedRow":
        """
        Parse a flat wire row: column values plus a `__tag` key.
        The legacy `__department` key is accepted as well.
        """
        if not isinstance(data, Mapping):
            raise ValidationError(f"Row must be an object, got {type(data).__name__}")

        tag = data.get(TAG_KEY)
        if tag is None:
            tag = data.get(LEGACY_TAG_KEY)
        if not isinstance(tag, str) or not tag.strip():
            raise ValidationError(f"Every combined row needs a non-empty '{TAG_KEY}'")

        return cls(tag=tag.strip(), row=validate_row(data))

    def to_api(self) -> Dict[str, str]:
        out = dict(self.row)
        out[TAG_KEY] = self.tag
        return out


def to_combined_view(request: Request) -> List[TaggedRow]:
    """Flatten a request into the ordered, tagged combined view."""
    view: List[TaggedRow] = [
        TaggedRow(tag=INITIAL_TAG, row=dict(r))
        for r in request.initial_rows
        if not is_blank_row(r)
    ]
    for sub in request.submissions:
        view.extend(TaggedRow(tag=sub.department, row=dict(r)) for r in sub.rows)
    return view


def from_combined_view(
    request: Request,
    tagged_rows: Iterable[TaggedRow],
    *,
    now: Optional[str] = None,
) -> Tuple[List[Row], List[Submission]]:
    """
    Split a combined view back into (initialRows, submissions).

    - INITIAL_TAG rows become initialRows.
    - Every existing submission gets the rows grouped under its department,
      or [] when none. department/completed/createdAt are kept.
    - If several submissions share a department, the first one takes the
      whole group; the later ones get [].
    - Tags with no matching submission create a new submission
      (completed=False) appended in first-seen order.
    """
    initial_rows: List[Row] = []
    groups: Dict[str, List[Row]] = {}

    for tr in tagged_rows:
        if tr.is_initial:
            initial_rows.append(dict(tr.row))
        else:
            groups.setdefault(tr.tag, []).append(dict(tr.row))

    submissions: List[Submission] = []
    claimed = set()
    for sub in request.submissions:
        if sub.department in claimed:
            rows: List[Row] = []
        else:
            rows = groups.get(sub.department, [])
            claimed.add(sub.department)
        submissions.append(sub.model_copy(update={"rows": rows}))

    stamp = now or _utc_iso()
    for dept, rows in groups.items():
        if dept in claimed:
            continue
        submissions.append(
            Submission(department=dept, rows=rows, completed=False, created_at=stamp)
        )

    return initial_rows, submissions


def unknown_departments(request: Request, tagged_rows: Iterable[TaggedRow]) -> List[str]:
    """Tags in the view that match no existing submission, in first-seen order."""
    known = {s.department for s in request.submissions}
    out: List[str] = []
    for tr in tagged_rows:
        if tr.is_initial or tr.tag in known or tr.tag in out:
            continue
        out.append(tr.tag)
    return out
