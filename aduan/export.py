"""
Printable and downloadable report listings.

The PDF is A4 landscape with 10 mm margins. When it cannot be built the
page falls back to printable_html(), which opens the browser print dialog
over the same listing.
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from datetime import date
from io import BytesIO
from typing import Optional

import pandas as pd
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from aduan.ingestion.feeds import Report, Status

logger = logging.getLogger(__name__)

PAGE_MARGIN = 10 * mm
LISTING_TITLE = "Senarai Aduan SMK KOLOMBONG"

LISTING_HEADERS = ["ID", "Tarikh", "Nama Guru", "Tempat", "Kerosakan", "Status"]
# Fractions of the usable page width, in LISTING_HEADERS order.
_COLUMN_SHARES = [0.10, 0.10, 0.17, 0.20, 0.31, 0.12]

_STATUS_FILL = {
    Status.NEW: colors.HexColor("#dbeafe"),
    Status.IN_PROGRESS: colors.HexColor("#fef9c3"),
    Status.DONE: colors.HexColor("#dcfce7"),
    Status.REJECTED: colors.HexColor("#fee2e2"),
}


@dataclass
class ExportError(Exception):
    reason: str

    def __str__(self) -> str:
        return f"PDF export failed: {self.reason}"


def listing_filename(generated_on: Optional[date] = None) -> str:
    stamp = (generated_on or date.today()).strftime("%d-%m-%Y")
    return f"Laporan_Aduan_SMKK_{stamp}.pdf"


def _listing_rows(reports: list[Report]) -> list[list[str]]:
    return [
        [r.id, r.reported_at, r.teacher_name, r.location, r.issue_description, Status(r.status).value]
        for r in reports
    ]


def build_listing_pdf(
    reports: list[Report],
    generated_on: Optional[date] = None,
    summary_text: Optional[str] = None,
) -> BytesIO:
    """Render the report listing to a PDF buffer. Raises ExportError."""
    generated_on = generated_on or date.today()
    buffer = BytesIO()
    page_size = landscape(A4)
    doc = SimpleDocTemplate(
        buffer,
        pagesize=page_size,
        leftMargin=PAGE_MARGIN,
        rightMargin=PAGE_MARGIN,
        topMargin=PAGE_MARGIN,
        bottomMargin=PAGE_MARGIN,
        title=LISTING_TITLE,
    )
    story = []

    # Styles
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        'ListingTitle',
        parent=styles['Heading1'],
        textColor=colors.HexColor('#1e293b'),
        spaceAfter=4,
        alignment=TA_CENTER
    )
    subtitle_style = ParagraphStyle(
        'ListingSubtitle',
        parent=styles['Normal'],
        textColor=colors.HexColor('#64748b'),
        spaceAfter=12,
        alignment=TA_CENTER
    )
    heading_style = ParagraphStyle(
        'SummaryHeading',
        parent=styles['Heading3'],
        textColor=colors.HexColor('#1e3a8a'),
        spaceBefore=6,
        spaceAfter=4,
    )
    cell_style = ParagraphStyle(
        'Cell',
        parent=styles['Normal'],
        fontSize=8,
        leading=10,
    )

    story.append(Paragraph(LISTING_TITLE, title_style))
    story.append(Paragraph(f"Tarikh Jana: {generated_on.strftime('%d/%m/%Y')}", subtitle_style))

    if summary_text:
        for line in summary_text.split('\n'):
            line = line.strip()
            if not line or '═' in line:
                continue
            if line.isupper() and len(line) > 10:
                story.append(Paragraph(html.escape(line), heading_style))
            else:
                story.append(Paragraph(html.escape(line), cell_style))
        story.append(Spacer(1, 6 * mm))

    usable_width = page_size[0] - 2 * PAGE_MARGIN
    col_widths = [usable_width * share for share in _COLUMN_SHARES]

    data = [LISTING_HEADERS]
    for row in _listing_rows(reports):
        data.append([Paragraph(html.escape(value), cell_style) for value in row])
    if not reports:
        data.append(["Tiada laporan ditemui.", "", "", "", "", ""])

    table = Table(data, colWidths=col_widths, repeatRows=1)
    table_style = [
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#1e293b')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, 0), 9),
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('GRID', (0, 0), (-1, -1), 0.25, colors.HexColor('#cbd5e1')),
        ('TOPPADDING', (0, 0), (-1, -1), 4),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 4),
    ]
    for i, report in enumerate(reports, 1):
        table_style.append(('BACKGROUND', (5, i), (5, i), _STATUS_FILL[Status(report.status)]))
    table.setStyle(TableStyle(table_style))
    story.append(table)

    try:
        doc.build(story)
    except Exception as e:
        logger.error("[export] PDF build failed: %s", e)
        raise ExportError(reason=str(e)) from e

    buffer.seek(0)
    return buffer


def listing_csv(reports: list[Report]) -> bytes:
    """The listing as UTF-8 CSV (with BOM so spreadsheet apps detect it)."""
    df = pd.DataFrame(_listing_rows(reports), columns=LISTING_HEADERS)
    return df.to_csv(index=False).encode("utf-8-sig")


def printable_html(reports: list[Report], generated_on: Optional[date] = None) -> str:
    """Self-contained listing page that opens the print dialog on load."""
    generated_on = generated_on or date.today()
    header = "".join(f"<th>{html.escape(h)}</th>" for h in LISTING_HEADERS)
    body = "".join(
        "<tr>" + "".join(f"<td>{html.escape(value)}</td>" for value in row) + "</tr>"
        for row in _listing_rows(reports)
    )
    return f"""<!doctype html>
<html><head><meta charset="utf-8"><title>{html.escape(LISTING_TITLE)}</title>
<style>
  @page {{ size: A4 landscape; margin: 10mm; }}
  body {{ font-family: sans-serif; font-size: 11px; color: #1e293b; }}
  table {{ width: 100%; border-collapse: collapse; }}
  th, td {{ border: 1px solid #cbd5e1; padding: 4px; text-align: left; vertical-align: top; }}
  th {{ background: #1e293b; color: #fff; }}
</style></head>
<body>
<h3>{html.escape(LISTING_TITLE)}</h3>
<p>Tarikh Jana: {generated_on.strftime('%d/%m/%Y')}</p>
<table><thead><tr>{header}</tr></thead><tbody>{body}</tbody></table>
<script>window.print();</script>
</body></html>"""
