"""
Report rendering.

Reports are built from one filtered record set and rendered as JSON, CSV or
PDF. Costs are rounded only here, never earlier.
"""
import csv
import io
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Optional, Union

from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

from strepsil.config import settings
from strepsil.models import AiCall, as_utc, utc_now
from strepsil.providers.pricing import UNIT_COST_PLACES, format_cost

logger = logging.getLogger(__name__)

JSON = "json"
CSV = "csv"
PDF = "pdf"
FORMATS = (JSON, CSV, PDF)

CSV_COLUMNS = [
    "id",
    "date",
    "provider",
    "model",
    "endpoint",
    "tokens_in",
    "tokens_out",
    "total_tokens",
    "cost",
    "latency",
    "status",
]

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
PDF_LINES_PER_PAGE = 20
PDF_TITLE = f"{settings.APP_NAME} AI Usage Report"

MEDIA_TYPES = {
    JSON: "application/json",
    CSV: "text/csv",
    PDF: "application/pdf",
}


@dataclass
class RenderedReport:
    """A rendered report ready to send."""
    format: str
    content: Union[dict, bytes]
    filename: str

    @property
    def media_type(self) -> str:
        return MEDIA_TYPES[self.format]


def billing_row(call: AiCall) -> dict:
    """Flatten one record into a billing report row."""
    return {
        "id": call.id,
        "date": as_utc(call.created_at).strftime(DATE_FORMAT),
        "provider": call.provider,
        "model": call.model_type,
        "endpoint": call.endpoint,
        "tokens_in": call.tokens_in or 0,
        "tokens_out": call.tokens_out or 0,
        "total_tokens": call.total_tokens,
        "cost": call.total_cost or 0,
        "latency": call.latency_ms or 0,
        "status": call.status,
    }


def billing_summary(
    records: list[AiCall],
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> dict:
    """Summary block of the billing report."""
    total_calls = len(records)
    latency = sum(call.latency_ms or 0 for call in records)
    return {
        "total_calls": total_calls,
        "total_cost": sum(call.total_cost or 0 for call in records),
        "total_tokens": sum(call.total_tokens for call in records),
        "average_latency": latency / total_calls if total_calls else 0,
        "date_range": {
            "start": start_date or "All time",
            "end": end_date or "All time",
        },
    }


def report_filename(report_type: str, extension: str, generated_at: Optional[datetime] = None) -> str:
    """<report-type>-report-<YYYY-MM-DD>.<ext>, dated by generation time."""
    generated_at = generated_at or utc_now()
    return f"{report_type}-report-{generated_at.strftime('%Y-%m-%d')}.{extension}"


def render_csv(rows: Iterable[dict]) -> bytes:
    """Header row plus one line per billing row."""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=CSV_COLUMNS, extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow({**row, "cost": f"{row['cost']:.{UNIT_COST_PLACES}f}"})
    return buffer.getvalue().encode("utf-8")


def paginate(lines: list[Any], per_page: int = PDF_LINES_PER_PAGE) -> list[list[Any]]:
    """Split lines into pages of at most per_page entries."""
    return [lines[i:i + per_page] for i in range(0, len(lines), per_page)]


def pdf_call_line(row: dict) -> str:
    return (
        f"{row['date']} | {row['provider']}/{row['model']} | {row['endpoint']} | "
        f"{format_cost(row['cost'])} | {row['status']}"
    )


def render_pdf(summary: dict, rows: list[dict], generated_at: Optional[datetime] = None) -> bytes:
    """
    Render the billing report as a PDF.

    Layout: centered title and generation time, a summary section, then
    "Detailed Calls" with one line per call, a new page every 20 lines.
    """
    generated_at = generated_at or utc_now()
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=letter)
    pdf.setTitle(PDF_TITLE)
    width, height = letter
    margin = 72

    y = height - margin
    pdf.setFont("Helvetica-Bold", 20)
    pdf.drawCentredString(width / 2, y, PDF_TITLE)
    y -= 22
    pdf.setFont("Helvetica", 12)
    pdf.drawCentredString(width / 2, y, f"Generated on: {generated_at.strftime(DATE_FORMAT)}")
    y -= 36

    pdf.setFont("Helvetica-Bold", 16)
    pdf.drawString(margin, y, "Summary")
    y -= 20
    pdf.setFont("Helvetica", 12)
    date_range = summary["date_range"]
    for text in (
        f"Total Calls: {summary['total_calls']}",
        f"Total Cost: {format_cost(summary['total_cost'])}",
        f"Total Tokens: {summary['total_tokens']}",
        f"Average Latency: {int(summary['average_latency'] + 0.5)}ms",
        f"Date Range: {date_range['start']} to {date_range['end']}",
    ):
        pdf.drawString(margin, y, text)
        y -= 16
    y -= 20

    pdf.setFont("Helvetica-Bold", 16)
    pdf.drawString(margin, y, "Detailed Calls")
    y -= 18

    for page_number, page in enumerate(paginate(rows)):
        if page_number > 0:
            pdf.showPage()
            y = height - margin
        pdf.setFont("Helvetica", 10)
        for row in page:
            pdf.drawString(margin, y, pdf_call_line(row))
            y -= 14

    pdf.showPage()
    pdf.save()
    return buffer.getvalue()


def render(
    report_type: str,
    summary: dict,
    rows: list[dict],
    format: str = JSON,
    generated_at: Optional[datetime] = None,
) -> RenderedReport:
    """
    Render a report in the requested format.

    Unsupported formats fall back to JSON.
    """
    generated_at = generated_at or utc_now()
    if format not in FORMATS:
        logger.info("Unsupported report format, using json", extra={"format": format})
        format = JSON

    if format == CSV:
        content = render_csv(rows)
    elif format == PDF:
        content = render_pdf(summary, rows, generated_at)
    else:
        content = {"summary": summary, "calls": rows}

    return RenderedReport(
        format=format,
        content=content,
        filename=report_filename(report_type, format, generated_at),
    )
