from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.validation import clean_name_list, validate_columns, validate_rows

STATUS_IN_PROGRESS = "In Progress"
STATUS_COMPLETED = "Completed"

Row = Dict[str, str]

REMINDER_FREQUENCIES = ("daily", "weekly", "biweekly", "monthly")


class Reminders(BaseModel):
    """
    Reminder settings stored on a request.
    `lastSentAt` is written by the reminder loop after a successful send.
    """
    model_config = ConfigDict(populate_by_name=True)

    enabled: bool = False
    frequency: str = "weekly"
    last_sent_at: Optional[str] = Field(default=None, alias="lastSentAt")

    @field_validator("frequency", mode="before")
    @classmethod
    def _check_frequency(cls, v: Any) -> str:
        freq = str(v or "weekly").strip().lower()
        if freq not in REMINDER_FREQUENCIES:
            raise ValueError(f"frequency must be one of: {', '.join(REMINDER_FREQUENCIES)}")
        return freq


class Submission(BaseModel):
    """
    Domain model for one department's contribution to a request.
    """
    model_config = ConfigDict(populate_by_name=True)

    department: str
    rows: List[Row] = Field(default_factory=list)
    completed: bool = False
    created_at: Optional[str] = Field(default=None, alias="createdAt")

    @field_validator("rows", mode="before")
    @classmethod
    def _clean_rows(cls, v: Any) -> List[Row]:
        return validate_rows(v)


class Request(BaseModel):
    """
    Domain model for a data request record.

    Field names are snake_case in Python and camelCase on the wire / in storage.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str = ""
    format: str = ""
    instructions: str = ""

    departments: List[str] = Field(default_factory=list)
    emails: List[str] = Field(default_factory=list)
    deadline: Optional[date] = None

    email_subject: str = Field(default="", alias="emailSubject")
    email_body: str = Field(default="", alias="emailBody")
    reminders: Reminders = Field(default_factory=Reminders)

    columns: List[str] = Field(default_factory=list)
    initial_rows: List[Row] = Field(default_factory=list, alias="initialRows")
    submissions: List[Submission] = Field(default_factory=list)

    status: str = STATUS_IN_PROGRESS
    created_at: str = Field(default="", alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")

    # Bumped by the store on every write (optimistic concurrency)
    version: int = 0

    @field_validator("departments", "emails", mode="before")
    @classmethod
    def _clean_names(cls, v: Any) -> List[str]:
        return clean_name_list(v)

    @field_validator("columns", mode="before")
    @classmethod
    def _clean_columns(cls, v: Any) -> List[str]:
        return validate_columns(v)

    @field_validator("initial_rows", mode="before")
    @classmethod
    def _clean_initial_rows(cls, v: Any) -> List[Row]:
        return validate_rows(v)

    @field_validator("deadline", mode="before")
    @classmethod
    def _empty_deadline(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("reminders", mode="before")
    @classmethod
    def _default_reminders(cls, v: Any) -> Any:
        return v if v is not None else {}

    @property
    def is_completed(self) -> bool:
        return self.status == STATUS_COMPLETED
