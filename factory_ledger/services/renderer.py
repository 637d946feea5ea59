"""Statement rendering sinks."""

import io
import logging
from abc import ABC, abstractmethod
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.colors import HexColor
from reportlab.lib.enums import TA_RIGHT
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from factory_ledger.core.errors import RenderingFailure
from factory_ledger.schemas.statement import Statement, StatementType

logger = logging.getLogger(__name__)

NAVY = HexColor("#1B2A4A")
SLATE_PALE = HexColor("#F1F5F9")
AMBER_PALE = HexColor("#FDF3DC")

STATUS_LABELS = {
    "pending": "Pending",
    "full": "Full Payment",
    "advance": "Advance",
    "overpaid": "Overpaid",
}


class StatementRenderer(ABC):
    media_type: str = "application/octet-stream"

    @abstractmethod
    def render(self, statement: Statement) -> bytes:
        ...


def render_statement(renderer: StatementRenderer, statement: Statement) -> bytes:
    """Render, surfacing any renderer error as RenderingFailure with its cause."""
    try:
        return renderer.render(statement)
    except RenderingFailure:
        raise
    except Exception as exc:
        logger.exception(
            "Statement rendering failed",
            extra={"statement_type": statement.statement_type.value}
        )
        raise RenderingFailure(f"Could not render {statement.title}", exc) from exc


class PdfStatementRenderer(StatementRenderer):
    """A4 landscape PDF: title block, header totals, line table, aggregate row."""

    media_type = "application/pdf"

    def __init__(self):
        styles = getSampleStyleSheet()
        self.title_style = ParagraphStyle(
            "StatementTitle", parent=styles["Title"], textColor=NAVY, spaceAfter=4
        )
        self.body_style = styles["BodyText"]
        self.right_style = ParagraphStyle("Right", parent=styles["BodyText"], alignment=TA_RIGHT)

    def render(self, statement: Statement) -> bytes:
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=landscape(A4),
            leftMargin=15 * mm,
            rightMargin=15 * mm,
            topMargin=15 * mm,
            bottomMargin=15 * mm,
            title=statement.title,
        )
        doc.build(self._story(statement))
        return buffer.getvalue()

    def _money(self, statement: Statement, amount: float) -> str:
        return f"{statement.currency} {amount:,.2f}"

    def _story(self, statement: Statement) -> list:
        product = statement.product
        story = [
            Paragraph(escape(statement.company_name), self.title_style),
            Paragraph(escape(statement.title), self.body_style),
            Paragraph(escape(f"Product: {product.display_name} ({product.unit})"), self.body_style),
            Paragraph(
                f"Generated: {statement.generated_at.strftime('%d %b %Y %H:%M')} UTC",
                self.right_style
            ),
            Spacer(1, 6 * mm),
        ]

        header = statement.header
        status = STATUS_LABELS.get(header.status.value, header.status.value) if header.status else "Mixed"
        summary = Table(
            [
                ["Total Amount", "Amount Tendered", "Net Advance", "Shortfall", "Status"],
                [
                    self._money(statement, header.total_amount),
                    self._money(statement, header.total_tendered),
                    self._money(statement, header.net_advance),
                    self._money(statement, header.shortfall),
                    status,
                ],
            ],
            hAlign="LEFT",
        )
        summary.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), NAVY),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            ("BACKGROUND", (0, 1), (-1, 1), SLATE_PALE),
            ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ]))
        story.extend([summary, Spacer(1, 6 * mm)])

        quantity_label = "Net Weight" if product.net_weight_mode else "Quantity"
        rows = [["Date", "Type", "Client", quantity_label, "Rate", "Total", "Tendered", "Net Advance", "Status"]]
        for line in statement.lines:
            rows.append([
                line.date.strftime("%d %b %Y"),
                line.kind.value.capitalize(),
                line.client_name,
                f"{line.quantity:,.2f} {line.quantity_unit}",
                f"{line.rate:,.2f} {line.rate_unit}",
                self._money(statement, line.total_amount),
                self._money(statement, line.tendered),
                self._money(statement, line.net_advance),
                STATUS_LABELS.get(line.payment_status.value, line.payment_status.value),
            ])

        if statement.aggregate is not None:
            aggregate = statement.aggregate
            rows.append([
                "Total",
                f"{aggregate.count} records",
                "",
                f"{aggregate.total_quantity:,.2f}",
                "",
                self._money(statement, aggregate.total_amount),
                self._money(statement, aggregate.total_tendered),
                self._money(statement, aggregate.net_advance),
                f"Outstanding {self._money(statement, aggregate.total_outstanding)}",
            ])

        lines = Table(rows, repeatRows=1, hAlign="LEFT")
        style = [
            ("BACKGROUND", (0, 0), (-1, 0), NAVY),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 8),
            ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
            ("ALIGN", (3, 1), (-2, -1), "RIGHT"),
        ]
        if statement.aggregate is not None:
            style += [
                ("BACKGROUND", (0, -1), (-1, -1), AMBER_PALE),
                ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
            ]
        lines.setStyle(TableStyle(style))
        story.append(lines)

        notes = statement.lines[0].notes if statement.statement_type == StatementType.INVOICE else None
        if notes:
            story.extend([Spacer(1, 4 * mm), Paragraph(escape(f"Notes: {notes}"), self.body_style)])

        return story
