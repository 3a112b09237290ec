from datetime import datetime
from io import BytesIO
from typing import Iterable, Optional
from xml.sax.saxutils import escape

import structlog
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.cidfonts import UnicodeCIDFont
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from ..models.models import TrainingRecord
from ..services.records import to_local


logger = structlog.get_logger(__name__)

KOREAN_FONT = "HYSMyeongJo-Medium"

# Register fonts
try:
    pdfmetrics.registerFont(UnicodeCIDFont(KOREAN_FONT))
except Exception as e:
    # Fallback to default fonts; Hangul will not render
    logger.warning("pdf_font_unavailable", font=KOREAN_FONT, error=str(e))

HEADERS = ["경비원", "현장", "교육 내용", "유형", "일자", "시간"]
TYPE_LABELS = {"card": "카드형", "video": "동영상"}


def _font() -> str:
    return KOREAN_FONT if KOREAN_FONT in pdfmetrics.getRegisteredFontNames() else "Helvetica"


def record_row(record: TrainingRecord) -> list:
    guard = record.guard
    site = guard.site if guard is not None else None
    local = to_local(record.completed_at)
    return [
        guard.name if guard is not None else "-",
        site.name if site is not None else "-",
        record.material_title,
        TYPE_LABELS.get(record.material_type, record.material_type),
        local.strftime("%Y. %m. %d."),
        local.strftime("%H:%M"),
    ]


def create_records_pdf(
    records: Iterable[TrainingRecord],
    title: str = "교육 이수 내역",
    printed_at: Optional[datetime] = None,
) -> BytesIO:
    """Render completion records as an A4 table; returns the PDF in a buffer."""
    records = list(records)
    printed_at = printed_at or datetime.utcnow()
    font = _font()

    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=14 * mm,
        leftMargin=14 * mm,
        topMargin=16 * mm,
        bottomMargin=16 * mm,
        title=title,
    )
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle("RecordsTitle", parent=styles["Heading1"], fontName=font, fontSize=18, spaceAfter=6)
    meta_style = ParagraphStyle("RecordsMeta", parent=styles["Normal"], fontName=font, fontSize=10, leading=14)
    cell_style = ParagraphStyle("RecordsCell", parent=styles["Normal"], fontName=font, fontSize=9, leading=11)

    story = [
        Paragraph(escape(title), title_style),
        Paragraph(f"출력일: {to_local(printed_at).strftime('%Y. %m. %d.')}", meta_style),
        Paragraph(f"총 {len(records)}건", meta_style),
        Spacer(1, 6 * mm),
    ]

    data = [HEADERS]
    for record in records:
        row = record_row(record)
        # Wrap the free-text columns
        row[2] = Paragraph(escape(row[2]), cell_style)
        data.append(row)

    table = Table(data, colWidths=[26 * mm, 32 * mm, 62 * mm, 18 * mm, 26 * mm, 18 * mm], repeatRows=1)
    table.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (-1, -1), font),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#1e40af")),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f5f7fa")]),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.HexColor("#d0d5dd")),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("TOPPADDING", (0, 0), (-1, -1), 3),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
    ]))
    story.append(table)

    doc.build(story)
    buffer.seek(0)
    return buffer
