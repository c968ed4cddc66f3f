"""
Tests for the combined view <-> storage conversion.

Run with: pytest tests/test_reconciler.py -v
"""
import pytest

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.errors import ValidationError
from core.reconciler import (
    TaggedRow,
    from_combined_view,
    to_combined_view,
    unknown_departments,
)
from core.validation import INITIAL_TAG
from models import Request, Submission

NOW = "2025-01-10T09:00:00Z"


def _request(**kw) -> Request:
    base = dict(
        id="REQ-001",
        columns=["A", "B"],
        departments=["Ops", "Finance"],
        createdAt="2025-01-01T00:00:00Z",
    )
    base.update(kw)
    return Request(**base)


def _sub(dept, rows, completed=False, created="2025-01-02T00:00:00Z") -> Submission:
    return Submission(department=dept, rows=rows, completed=completed, created_at=created)


class TestToCombinedView:
    """Flattening storage into the tagged view."""

    def test_order_initial_then_submissions(self):
        req = _request(
            initialRows=[{"A": "i1"}],
            submissions=[
                _sub("Ops", [{"A": "o1"}, {"A": "o2"}]),
                _sub("Finance", [{"A": "f1"}]),
            ],
        )
        view = to_combined_view(req)
        assert [(t.tag, t.row["A"]) for t in view] == [
            (INITIAL_TAG, "i1"),
            ("Ops", "o1"),
            ("Ops", "o2"),
            ("Finance", "f1"),
        ]

    def test_blank_initial_rows_filtered(self):
        req = _request(initialRows=[{"A": "", "B": "  "}, {"A": "keep", "B": ""}])
        view = to_combined_view(req)
        assert len(view) == 1
        assert view[0].row == {"A": "keep", "B": ""}

    def test_wire_rows(self):
        req = _request(
            initialRows=[{"A": "1", "B": ""}],
            submissions=[_sub("X", [{"A": "2", "B": "y"}])],
        )
        assert [t.to_api() for t in to_combined_view(req)] == [
            {"A": "1", "B": "", "__tag": "Template/Initial"},
            {"A": "2", "B": "y", "__tag": "X"},
        ]

    def test_drift_keys_visible(self):
        req = _request(submissions=[_sub("Ops", [{"A": "1", "Old": "x"}])])
        assert to_combined_view(req)[0].row == {"A": "1", "Old": "x"}


class TestFromCombinedView:
    """Splitting the edited view back into storage."""

    def test_round_trip_unedited(self):
        subs = [
            _sub("Ops", [{"A": "o1", "B": ""}], completed=True),
            _sub("Finance", [{"A": "f1", "B": "x"}]),
        ]
        req = _request(initialRows=[{"A": "i1", "B": ""}], submissions=subs)

        initial, new_subs = from_combined_view(req, to_combined_view(req), now=NOW)

        assert initial == req.initial_rows
        assert [s.model_dump() for s in new_subs] == [s.model_dump() for s in subs]

    def test_edit_and_move_between_groups(self):
        req = _request(
            initialRows=[{"A": "1"}],
            submissions=[_sub("Ops", [{"A": "2"}], completed=True)],
        )
        view = [
            TaggedRow(INITIAL_TAG, {"A": "1"}),
            TaggedRow("Ops", {"A": "2-edited"}),
            TaggedRow("Ops", {"A": "3"}),
        ]
        initial, subs = from_combined_view(req, view, now=NOW)

        assert initial == [{"A": "1"}]
        assert len(subs) == 1
        assert subs[0].rows == [{"A": "2-edited"}, {"A": "3"}]
        assert subs[0].completed is True
        assert subs[0].created_at == "2025-01-02T00:00:00Z"

    def test_submission_without_rows_in_view_is_emptied(self):
        req = _request(submissions=[_sub("Ops", [{"A": "x"}]), _sub("Finance", [{"A": "y"}])])
        _, subs = from_combined_view(req, [TaggedRow("Finance", {"A": "y"})], now=NOW)
        assert [s.department for s in subs] == ["Ops", "Finance"]
        assert subs[0].rows == []
        assert subs[1].rows == [{"A": "y"}]

    def test_unknown_department_creates_submission(self):
        req = _request(submissions=[_sub("Ops", [])])
        view = [
            TaggedRow("Legal", {"A": "l1"}),
            TaggedRow("Ops", {"A": "o1"}),
            TaggedRow("Audit", {"A": "a1"}),
            TaggedRow("Legal", {"A": "l2"}),
        ]
        assert unknown_departments(req, view) == ["Legal", "Audit"]

        _, subs = from_combined_view(req, view, now=NOW)

        assert [s.department for s in subs] == ["Ops", "Legal", "Audit"]
        assert subs[1].rows == [{"A": "l1"}, {"A": "l2"}]
        assert subs[1].completed is False
        assert subs[1].created_at == NOW

    def test_duplicate_department_first_takes_group(self):
        req = _request(submissions=[_sub("Ops", [{"A": "1"}]), _sub("Ops", [{"A": "2"}])])
        _, subs = from_combined_view(req, to_combined_view(req), now=NOW)
        assert subs[0].rows == [{"A": "1"}, {"A": "2"}]
        assert subs[1].rows == []

    def test_tag_before_initial_rows_keeps_relative_order(self):
        req = _request(submissions=[_sub("Ops", [])])
        view = [
            TaggedRow("Ops", {"A": "o1"}),
            TaggedRow(INITIAL_TAG, {"A": "i1"}),
            TaggedRow("Ops", {"A": "o2"}),
        ]
        initial, subs = from_combined_view(req, view, now=NOW)
        assert initial == [{"A": "i1"}]
        assert subs[0].rows == [{"A": "o1"}, {"A": "o2"}]


class TestTaggedRowWire:
    """Wire format of combined rows."""

    def test_from_api_tag_key(self):
        tr = TaggedRow.from_api({"A": 5, "__tag": " Ops "})
        assert tr.tag == "Ops"
        assert tr.row == {"A": "5"}

    def test_legacy_department_key(self):
        tr = TaggedRow.from_api({"A": "x", "__department": "Finance"})
        assert tr.tag == "Finance"
        assert "__department" not in tr.row

    def test_missing_tag_rejected(self):
        with pytest.raises(ValidationError):
            TaggedRow.from_api({"A": "x"})

    def test_to_api(self):
        assert TaggedRow("Ops", {"A": "1"}).to_api() == {"A": "1", "__tag": "Ops"}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
