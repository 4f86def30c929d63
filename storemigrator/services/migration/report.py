"""Per-run outcome report.

Rows are accumulated in processing order and rendered to an ``.xlsx`` file
once the run finishes. The aggregate counters are what the job record stores.
"""

import io
import logging
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

import aiofiles
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from pydantic import BaseModel

logger = logging.getLogger(__name__)

REPORT_HEADERS = [
    "Sr No",
    "Product ID",
    "Handle",
    "Title",
    "Status",
    "Created Product GID",
    "Reason",
]

REPORT_SHEET_TITLE = "Products Report"


class RowStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class ReportRow(BaseModel):
    """Outcome for one staging product."""

    product_id: str | None = None
    handle: str = ""
    title: str = ""
    status: RowStatus
    created_id: str = ""
    reason: str = ""

    @classmethod
    def success(cls, product_id, handle, title, created_id="", reason="") -> "ReportRow":
        return cls(
            product_id=product_id,
            handle=handle or "",
            title=title or "",
            status=RowStatus.SUCCESS,
            created_id=created_id or "",
            reason=reason,
        )

    @classmethod
    def failed(cls, product_id, handle, title, reason, created_id="") -> "ReportRow":
        return cls(
            product_id=product_id,
            handle=handle or "",
            title=title or "",
            status=RowStatus.FAILED,
            created_id=created_id or "",
            reason=reason or "Unknown error",
        )


class MigrationResult(BaseModel):
    """Aggregate counters handed to the job queue on completion."""

    total_processed: int
    report_count: int
    success_count: int
    failed_count: int
    report_path: str | None = None


def _report_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d_%H-%M-%S")


def render_report_xlsx(rows: list[ReportRow]) -> bytes:
    """Render report rows to XLSX bytes.

    Args:
        rows: Report rows in processing order.

    Returns:
        XLSX content as bytes
    """
    wb = Workbook()
    ws = wb.active
    ws.title = REPORT_SHEET_TITLE

    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color="1F4E79", end_color="1F4E79", fill_type="solid")
    header_alignment = Alignment(horizontal="center")
    failed_font = Font(color="C00000")

    for col_idx, header in enumerate(REPORT_HEADERS, 1):
        cell = ws.cell(row=1, column=col_idx, value=header)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = header_alignment

    for row_idx, row in enumerate(rows, 2):
        values = [
            row_idx - 1,
            row.product_id or "",
            row.handle,
            row.title,
            row.status.value,
            row.created_id,
            row.reason,
        ]
        for col_idx, value in enumerate(values, 1):
            ws.cell(row=row_idx, column=col_idx, value=value)
        if row.status == RowStatus.FAILED:
            ws.cell(row=row_idx, column=5).font = failed_font

    for col_idx, header in enumerate(REPORT_HEADERS, 1):
        col_letter = get_column_letter(col_idx)
        max_length = len(header)
        for row_idx in range(2, len(rows) + 2):
            cell_value = ws.cell(row=row_idx, column=col_idx).value
            if cell_value:
                max_length = max(max_length, len(str(cell_value)))
        ws.column_dimensions[col_letter].width = min(max_length + 2, 60)

    ws.freeze_panes = "A2"

    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()


class ReportBuilder:
    """Collects report rows for one run and persists the final report."""

    def __init__(self, reports_dir: Path, prefix: str = "products_upload_report", job_id: str | None = None) -> None:
        self.reports_dir = Path(reports_dir)
        self.prefix = prefix
        self.job_id = job_id
        self.rows: list[ReportRow] = []

    def add(self, row: ReportRow) -> ReportRow:
        self.rows.append(row)
        return row

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.rows if r.status == RowStatus.SUCCESS)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.rows if r.status == RowStatus.FAILED)

    def report_file_name(self) -> str:
        parts = [self.prefix, _report_timestamp()]
        if self.job_id:
            parts.append(self.job_id)
        return "_".join(parts) + ".xlsx"

    async def save(self) -> Path:
        """Write the report under ``reports_dir`` and return its path."""
        self.reports_dir.mkdir(parents=True, exist_ok=True)
        path = self.reports_dir / self.report_file_name()
        content = render_report_xlsx(self.rows)
        async with aiofiles.open(path, "wb") as f:
            await f.write(content)
        logger.info("Report saved: %s", path)
        return path

    async def finish(self, total_processed: int) -> MigrationResult:
        """Persist the report and return the run's aggregate counters."""
        path = await self.save()
        return MigrationResult(
            total_processed=total_processed,
            report_count=len(self.rows),
            success_count=self.success_count,
            failed_count=self.failed_count,
            report_path=str(path),
        )
