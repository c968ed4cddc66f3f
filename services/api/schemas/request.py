"""
Pydantic schemas for the /requests API.

Bodies are camelCase on the wire. Row cells are left as `Any` here: coercion
to strings (and rejection of nested values) happens in the service, so every
caller goes through the same rules.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ReminderSettings(_CamelModel):
    """Reminder block as sent by the client (lastSentAt is server-owned)."""
    enabled: Optional[bool] = None
    frequency: Optional[str] = Field(
        None,
        description="daily | weekly | biweekly | monthly",
    )


class RequestCreate(_CamelModel):
    """Request to create a new data request."""
    id: Optional[str] = Field(None, description="Optional caller-proposed id; REQ-NNN otherwise")
    title: str = Field("", max_length=300)
    format: str = ""
    instructions: str = ""

    departments: List[str] = Field(default_factory=list)
    emails: List[str] = Field(default_factory=list)
    deadline: Optional[str] = Field(None, description="YYYY-MM-DD")

    email_subject: str = Field("", alias="emailSubject")
    email_body: str = Field("", alias="emailBody", description="May contain {{link}}")
    reminders: Optional[ReminderSettings] = None

    columns: List[str] = Field(default_factory=list)
    initial_rows: List[Dict[str, Any]] = Field(default_factory=list, alias="initialRows")

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class RequestUpdate(_CamelModel):
    """Partial update. Fields left out are not touched."""
    title: Optional[str] = Field(None, max_length=300)
    format: Optional[str] = None
    instructions: Optional[str] = None

    departments: Optional[List[str]] = None
    emails: Optional[List[str]] = None
    deadline: Optional[str] = None

    email_subject: Optional[str] = Field(None, alias="emailSubject")
    email_body: Optional[str] = Field(None, alias="emailBody")
    reminders: Optional[ReminderSettings] = None

    columns: Optional[List[str]] = None
    initial_rows: Optional[List[Dict[str, Any]]] = Field(None, alias="initialRows")
    submissions: Optional[List[Dict[str, Any]]] = None

    def to_payload(self) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True, exclude_unset=True)
        if self.reminders is not None:
            data["reminders"] = self.reminders.model_dump(exclude_none=True)
        return data


class SubmissionCreate(_CamelModel):
    """One department's rows."""
    department: str = Field(..., min_length=1)
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    completed: bool = False


class StatusUpdate(_CamelModel):
    status: str = Field(..., description="'In Progress' or 'Completed'")


class ColumnsUpdate(_CamelModel):
    columns: List[str]


class CombinedViewSave(_CamelModel):
    """Edited combined view; every row carries its `__tag`."""
    rows: List[Dict[str, Any]]
