"""Receipt rendering: data in, opaque artifact (bytes + filename) out."""

from datetime import datetime
from io import BytesIO
from typing import Protocol

from pydantic import BaseModel
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle


class ReceiptData(BaseModel):
    receipt_id: str
    order_id: str
    payment_id: str
    product_id: str
    amount: int  # minor units
    currency: str
    customer_name: str = ""
    customer_email: str
    paid_at: datetime


class ReceiptArtifact(BaseModel):
    filename: str
    content: bytes
    content_type: str = "application/pdf"


class ReceiptRenderer(Protocol):
    def render(self, data: ReceiptData) -> ReceiptArtifact:
        ...


def format_amount(amount: int, currency: str) -> str:
    return f"{amount / 100:.2f} {currency}"


class PdfReceiptRenderer:
    title = "Payment Receipt"

    def rows(self, data: ReceiptData) -> list[list[str]]:
        return [
            ["Field", "Value"],
            ["Receipt", data.receipt_id],
            ["Order ID", data.order_id],
            ["Payment ID", data.payment_id],
            ["Course", data.product_id],
            ["Amount", format_amount(data.amount, data.currency)],
            ["Billed to", f"{data.customer_name} <{data.customer_email}>".strip()],
            ["Paid at", data.paid_at.strftime("%Y-%m-%d %H:%M UTC")],
        ]

    def render(self, data: ReceiptData) -> ReceiptArtifact:
        buffer = BytesIO()
        doc = SimpleDocTemplate(buffer, pagesize=A4, title=self.title)
        styles = getSampleStyleSheet()
        table = Table(self.rows(data))
        table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), colors.grey),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("ALIGN", (0, 0), (-1, -1), "LEFT"),
            ("BOTTOMPADDING", (0, 0), (-1, 0), 8),
            ("GRID", (0, 0), (-1, -1), 0.5, colors.black),
        ]))
        story = [
            Paragraph(self.title, styles["Title"]),
            Spacer(1, 12),
            table,
            Spacer(1, 12),
            Paragraph("Thank you for purchasing our course!", styles["Normal"]),
        ]
        doc.build(story)
        return ReceiptArtifact(filename=f"receipt_{data.receipt_id}.pdf", content=buffer.getvalue())
