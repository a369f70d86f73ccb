"""County report aggregation and export for HarmonyDesk.

Invoices tagged ``For county report`` are collected into a :class:`ReportGroup`
and rendered in the layout each county court expects: a quoted CSV for King
County and a paginated landscape PDF table for Pierce County.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

from reportlab.lib.pagesizes import landscape, letter
from reportlab.lib.units import mm
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas

logger = logging.getLogger("harmonydesk.reports")

STATUS_DRAFT = "Draft"
STATUS_SENT = "Sent"
STATUS_COUNTY_REPORT = "For county report"
INVOICE_STATUSES = (STATUS_DRAFT, STATUS_SENT, STATUS_COUNTY_REPORT)

CSV_HEADER = ("Case Number", "Matter", "Bill To", "Hours", "Rate", "Total")

DEFAULT_PDF_FONT = "Helvetica"
REPORT_FONT_NAME = "HarmonyDeskSans"


class ReportUnavailableError(LookupError):
    """Raised when a jurisdiction has no export format yet."""


@dataclass(frozen=True)
class InvoiceRecord:
    case_number: str
    matter: str
    bill_to: str
    hours: float
    rate: float
    status: str

    @property
    def total(self) -> float:
        return self.hours * self.rate

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "InvoiceRecord":
        """Build a record from an ``invoices`` row or a demo invoice dict."""
        return cls(
            case_number=str(row["case_number"] or ""),
            matter=str(row["matter"] or ""),
            bill_to=str(row["contact"] or ""),
            hours=float(row["hours"] or 0),
            rate=float(row["rate"] or 0),
            status=str(row["status"] or ""),
        )


@dataclass(frozen=True)
class ReportTotals:
    case_count: int = 0
    total_hours: float = 0.0
    total_amount: float = 0.0

    def as_dict(self) -> dict[str, Any]:
        return {
            "cases": self.case_count,
            "hours": self.total_hours,
            "amount": self.total_amount,
        }


@dataclass(frozen=True)
class ReportGroup:
    records: tuple[InvoiceRecord, ...]
    totals: ReportTotals


@dataclass(frozen=True)
class PdfLayout:
    """Fixed geometry of a month-end PDF, in millimetres from the top-left."""

    margin_left: float = 10
    top: float = 20
    title_gap: float = 8
    summary_gap: float = 10
    line_height: float = 6
    max_y: float = 190
    title_font_size: int = 14
    summary_font_size: int = 11
    table_font_size: int = 10
    # Case #, Matter, Hours, Total ($), Bill To
    column_offsets: tuple[float, float, float, float, float] = (0, 40, 120, 150, 190)
    matter_max_chars: int = 40
    bill_to_max_chars: int = 30


@dataclass(frozen=True)
class Jurisdiction:
    slug: str
    name: str
    format_label: str
    next_due: str
    export_format: Optional[str] = None
    pdf_layout: PdfLayout = field(default_factory=PdfLayout)

    @property
    def filename(self) -> str:
        extension = self.export_format or "txt"
        return f"{self.slug}-report.{extension}"

    def as_dict(self) -> dict[str, Any]:
        return {
            "slug": self.slug,
            "name": self.name,
            "format": self.format_label,
            "nextDue": self.next_due,
            "export": self.export_format,
        }


JURISDICTIONS: dict[str, Jurisdiction] = {
    j.slug: j
    for j in (
        Jurisdiction(
            slug="king-county",
            name="King County Superior Court",
            format_label="Summary by case (hours + outcome)",
            next_due="End of month",
            export_format="csv",
        ),
        Jurisdiction(
            slug="pierce-county",
            name="Pierce County District Court",
            format_label="One line per session",
            next_due="15th of next month",
            export_format="pdf",
        ),
        Jurisdiction(
            slug="snohomish-county",
            name="Snohomish County Superior Court",
            format_label="Grouped by case with totals",
            next_due="End of quarter",
        ),
    )
}

EXPORT_MIMETYPES = {
    "csv": "text/csv",
    "pdf": "application/pdf",
}


def register_pdf_font(path: str) -> str:
    """Register a TrueType font for report PDFs and return its ReportLab name.

    The standard Helvetica font only encodes cp1252, so names outside Latin-1
    (Polish, Cyrillic, CJK...) need an embedded Unicode font.
    """
    name = f"{REPORT_FONT_NAME}-{Path(path).stem}"
    if name not in pdfmetrics.getRegisteredFontNames():
        pdfmetrics.registerFont(TTFont(name, path))
        logger.info("Registered report font %s from %s", name, path)
    return name


def get_jurisdiction(slug: str) -> Optional[Jurisdiction]:
    return JURISDICTIONS.get((slug or "").strip().lower())


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------
def aggregate_for_county_report(records: Iterable[InvoiceRecord]) -> ReportGroup:
    """Keep county-report invoices in source order and total them."""
    selected = tuple(r for r in records if r.status == STATUS_COUNTY_REPORT)
    totals = ReportTotals(
        case_count=len(selected),
        total_hours=sum((r.hours for r in selected), 0.0),
        total_amount=sum((r.total for r in selected), 0.0),
    )
    return ReportGroup(records=selected, totals=totals)


def _fixed(value: float) -> str:
    return f"{value:.2f}"


def _truncate(text: str, limit: int) -> str:
    if len(text) > limit:
        return text[: limit - 3] + "..."
    return text


# ---------------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------------
def _quote(cell: str) -> str:
    return '"' + cell.replace('"', '""') + '"'


def export_csv(group: ReportGroup) -> bytes:
    rows: list[Iterable[str]] = [CSV_HEADER]
    for record in group.records:
        rows.append(
            (
                record.case_number,
                record.matter,
                record.bill_to,
                _fixed(record.hours),
                _fixed(record.rate),
                _fixed(record.total),
            )
        )
    text = "\n".join(",".join(_quote(cell) for cell in row) for row in rows)
    return text.encode("utf-8")


# ---------------------------------------------------------------------------
# PDF
# ---------------------------------------------------------------------------
def export_pdf(
    group: ReportGroup,
    totals: Optional[ReportTotals] = None,
    jurisdiction: Optional[Jurisdiction] = None,
    font_name: str = DEFAULT_PDF_FONT,
) -> bytes:
    """Render the month-end table as a landscape letter PDF.

    The vertical cursor is tracked in millimetres from the top of the page.
    Before each body row the cursor is compared with ``layout.max_y``; once it
    is past the threshold a fresh page is started and the column headers are
    repeated before the row is drawn.
    """
    jurisdiction = jurisdiction or JURISDICTIONS["pierce-county"]
    layout = jurisdiction.pdf_layout
    totals = totals or group.totals

    pdf_buffer = BytesIO()
    page_size = landscape(letter)
    page_height = page_size[1]
    pdf = canvas.Canvas(
        pdf_buffer,
        pagesize=page_size,
        invariant=1,
    )
    pdf.setTitle(f"{jurisdiction.name} Month-End Report")

    def text_at(column: int, cursor_y: float, text: str) -> None:
        x = layout.margin_left + layout.column_offsets[column]
        pdf.drawString(x * mm, page_height - cursor_y * mm, text)

    def draw_column_headers(cursor_y: float) -> float:
        pdf.setFont(font_name, layout.table_font_size)
        for column, label in enumerate(("Case #", "Matter", "Hours", "Total ($)", "Bill To")):
            text_at(column, cursor_y, label)
        return cursor_y + layout.line_height

    cursor_y = layout.top
    pdf.setFont(font_name, layout.title_font_size)
    text_at(0, cursor_y, f"{jurisdiction.name} — Month-End Report")

    cursor_y += layout.title_gap
    pdf.setFont(font_name, layout.summary_font_size)
    text_at(
        0,
        cursor_y,
        f"Total cases: {totals.case_count}    "
        f"Total hours: {_fixed(totals.total_hours)}    "
        f"Total amount: ${_fixed(totals.total_amount)}",
    )

    cursor_y += layout.summary_gap
    cursor_y = draw_column_headers(cursor_y)

    pages = 1
    for record in group.records:
        if cursor_y > layout.max_y:
            pdf.showPage()
            pages += 1
            cursor_y = draw_column_headers(layout.top)

        text_at(0, cursor_y, record.case_number)
        text_at(1, cursor_y, _truncate(record.matter, layout.matter_max_chars))
        text_at(2, cursor_y, _fixed(record.hours))
        text_at(3, cursor_y, _fixed(record.total))
        text_at(4, cursor_y, _truncate(record.bill_to, layout.bill_to_max_chars))
        cursor_y += layout.line_height

    pdf.showPage()
    pdf.save()
    logger.info(
        "Rendered %s PDF: %d records on %d page(s)",
        jurisdiction.slug,
        len(group.records),
        pages,
    )
    return pdf_buffer.getvalue()


def render_report(
    jurisdiction: Jurisdiction,
    records: Iterable[InvoiceRecord],
    font_name: str = DEFAULT_PDF_FONT,
) -> tuple[bytes, str, str]:
    """Aggregate ``records`` and export them in the jurisdiction's format.

    Returns ``(payload, filename, mimetype)``.
    """
    if jurisdiction.export_format is None:
        raise ReportUnavailableError(f"{jurisdiction.name} reports are not available yet.")

    group = aggregate_for_county_report(records)
    if jurisdiction.export_format == "csv":
        payload = export_csv(group)
    else:
        payload = export_pdf(group, jurisdiction=jurisdiction, font_name=font_name)
    return payload, jurisdiction.filename, EXPORT_MIMETYPES[jurisdiction.export_format]
