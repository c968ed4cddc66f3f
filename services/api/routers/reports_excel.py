# services/api/routers/reports_excel.py
import io
import logging
import re

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from core.report_excel import build_combined_workbook
from routers.deps import Service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/requests", tags=["reports-excel"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _safe_filename(request_id: str) -> str:
    return re.sub(r"[^A-Za-z0-9._-]+", "_", request_id) or "request"


@router.get("/{request_id}/export.xlsx")
def export_combined_excel(request_id: str, service: Service):
    """Download the combined view (all departments) as Excel."""
    request = service.get_request(request_id)
    excel_bytes = build_combined_workbook(request)
    logger.info(f"📝 Excel export for {request_id}: {len(excel_bytes)} bytes")

    filename = f"{_safe_filename(request.id)}.xlsx"
    return StreamingResponse(
        io.BytesIO(excel_bytes),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
