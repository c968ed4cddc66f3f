"""
Tests for the combined-view Excel export.

Run with: pytest tests/test_report_excel.py -v
"""
from io import BytesIO

import pytest
from openpyxl import load_workbook

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.report_excel import build_combined_workbook
from models import Request


@pytest.fixture
def request_with_drift():
    return Request(
        id="REQ-001",
        title="Meters",
        departments=["Distribution", "Maintenance", "Legal"],
        columns=["Asset ID", "Status"],
        initialRows=[{"Asset ID": "MTR-000", "Status": ""}],
        submissions=[
            {
                "department": "Distribution",
                "rows": [{"Asset ID": "MTR-001", "Status": "Active", "Old Column": "kept"}],
                "completed": True,
            },
            {"department": "Maintenance", "rows": [{"Asset ID": "MTR-003"}]},
        ],
    )


def _load(request):
    return load_workbook(BytesIO(build_combined_workbook(request)))


def test_data_sheet(request_with_drift):
    ws = _load(request_with_drift)["Data"]
    rows = [[c.value for c in r] for r in ws.iter_rows()]

    assert rows[0] == ["Department", "Asset ID", "Status", "Old Column"]
    assert rows[1][:2] == ["Template/Initial", "MTR-000"]
    assert rows[2] == ["Distribution", "MTR-001", "Active", "kept"]
    assert rows[3][:2] == ["Maintenance", "MTR-003"]
    assert ws.freeze_panes == "A2"
    assert ws["A1"].font.bold


def test_progress_sheet(request_with_drift):
    ws = _load(request_with_drift)["Progress"]
    rows = [[c.value for c in r] for r in ws.iter_rows()]
    assert rows == [
        ["Department", "Submitted", "Completed"],
        ["Distribution", "Yes", "Yes"],
        ["Maintenance", "Yes", "No"],
        ["Legal", "No", "No"],
    ]


def test_formula_like_text_stays_text():
    req = Request(
        id="REQ-003",
        departments=["=Ops"],
        columns=["A"],
        submissions=[{"department": "=Ops", "rows": [{"A": "=1+1"}, {"A": "=HYPERLINK(\"http://x\")"}]}],
    )
    wb = _load(req)
    data = wb["Data"]

    assert data["A2"].value == "=Ops"
    assert data["B2"].value == "=1+1"
    assert data["B3"].value == '=HYPERLINK("http://x")'
    for cell in (data["A2"], data["B2"], data["B3"], wb["Progress"]["A2"]):
        assert cell.data_type == "s"


def test_department_column_gets_distinct_tag_header():
    req = Request(
        id="REQ-004",
        columns=["Department", "Value"],
        submissions=[{"department": "Ops", "rows": [{"Department": "Field team", "Value": "3"}]}],
    )
    rows = [[c.value for c in r] for r in _load(req)["Data"].iter_rows()]
    assert rows == [
        ["Department (tag)", "Department", "Value"],
        ["Ops", "Field team", "3"],
    ]


def test_empty_request():
    wb = _load(Request(id="REQ-002"))
    assert [c.value for c in wb["Data"][1]] == ["Department"]
    assert wb["Data"].max_row == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
