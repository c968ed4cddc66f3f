"""
Validation utilities for the data request workspace.
Ensures data integrity at the service boundary and provides clear error messages.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping

from core.errors import ValidationError

# Keys used by the combined view to carry the originating department.
# They are metadata, never row content.
TAG_KEY = "__tag"
LEGACY_TAG_KEY = "__department"
RESERVED_KEYS = (TAG_KEY, LEGACY_TAG_KEY)
# Tag carried by baseline rows (Request.initialRows) in the combined view.
INITIAL_TAG = "Template/Initial"


def is_blank_value(value: Any) -> bool:
    """True for None and for strings that are empty after stripping."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def is_blank_row(row: Mapping[str, Any]) -> bool:
    """A row is blank when every value is empty/blank/undefined."""
    return all(is_blank_value(v) for v in row.values())


def coerce_cell(value: Any, column: str) -> str:
    """
    Coerce a single cell value to text.

    Rules:
    - None -> ""
    - bool -> "true"/"false"
    - int/float -> str(value)
    - str -> unchanged
    - dict/list/anything else -> ValidationError (rows are flat)
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    raise ValidationError(
        f"Column '{column}' must hold a text value, got {type(value).__name__}"
    )


def validate_row(row: Any) -> Dict[str, str]:
    """
    Validate one row and return a clean, ordered copy.

    Keys keep their original order; keys outside the request's columns are
    kept as-is. Reserved tag keys are removed.
    """
    if not isinstance(row, Mapping):
        raise ValidationError(f"Row must be an object, got {type(row).__name__}")

    clean: Dict[str, str] = {}
    for key, value in row.items():
        if not isinstance(key, str):
            raise ValidationError(f"Column names must be text, got {key!r}")
        if key in RESERVED_KEYS:
            continue
        clean[key] = coerce_cell(value, key)
    return clean


def validate_rows(rows: Iterable[Any] | None) -> List[Dict[str, str]]:
    if rows is None:
        return []
    if isinstance(rows, (str, bytes, Mapping)):
        raise ValidationError("Rows must be a list of objects")
    return [validate_row(r) for r in rows]


def validate_columns(columns: Iterable[Any] | None) -> List[str]:
    """
    Validate a column list.

    Rules:
    - every column is a non-empty string (after trimming)
    - names are unique (after trimming)
    - reserved tag keys cannot be used as column names

    Raises:
        ValidationError: if any rule fails
    """
    if columns is None:
        return []
    if isinstance(columns, (str, bytes)):
        raise ValidationError("columns must be a list of names")

    seen = set()
    duplicates = []
    clean: List[str] = []

    for col in columns:
        if not isinstance(col, str):
            raise ValidationError(f"Column names must be text, got {col!r}")
        name = col.strip()
        if not name:
            raise ValidationError("Column names must not be empty")
        if name in RESERVED_KEYS:
            raise ValidationError(f"'{name}' is a reserved name")
        if name in seen:
            duplicates.append(name)
            continue
        seen.add(name)
        clean.append(name)

    if duplicates:
        raise ValidationError(
            f"Duplicate column names found: {sorted(set(duplicates))}"
        )
    return clean


def clean_name_list(values: Iterable[Any] | None) -> List[str]:
    """
    Normalize an ordered set of names (departments, emails):
    trim, drop blanks, drop duplicates keeping the first occurrence.
    """
    if not values:
        return []
    out: List[str] = []
    seen = set()
    for v in values:
        if v is None:
            continue
        s = str(v).strip()
        if not s or s in seen:
            continue
        seen.add(s)
        out.append(s)
    return out


def validate_department(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("department must be a non-empty name")
    name = name.strip()
    if name == INITIAL_TAG:
        raise ValidationError(f"'{INITIAL_TAG}' is reserved for baseline rows")
    return name
