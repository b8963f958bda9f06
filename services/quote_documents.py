"""Client quote documents: PDF, Markdown and download file names."""
from __future__ import annotations

import io
import logging
import re
from datetime import date
from pathlib import Path
from typing import Any, Mapping, Optional

from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

from pricing import format_currency, format_days

logger = logging.getLogger(__name__)

PDF_TOP_MARGIN = 750
PDF_BOTTOM_MARGIN = 60
PDF_LINE_HEIGHT = 20
_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-z0-9]", re.IGNORECASE)


def quote_filename(client_name: str, extension: str, *, on: Optional[date] = None) -> str:
    """Return ``<client>_pricing_<YYYY-MM-DD>.<extension>`` with a filesystem-safe client part."""

    safe_client = _UNSAFE_FILENAME_CHARS.sub("_", client_name or "project").lower()
    return f"{safe_client}_pricing_{(on or date.today()).isoformat()}.{extension}"


def _money(quote: Mapping[str, Any], amount: float) -> str:
    return format_currency(amount, quote["currency"]["symbol"])


def render_quote_markdown(quote: Mapping[str, Any]) -> str:
    """Render a client quote as Markdown."""

    lines = [
        f"# Project Quote: {quote['client_name']}",
        "",
        f"**Date:** {quote['issued_on']}",
    ]
    if quote.get("preparer_name"):
        lines.append(f"**Prepared by:** {quote['preparer_name']}")
    lines += [
        f"**Day rate:** {_money(quote, quote['day_rate'])} ({quote['currency']['code']})",
        "",
        "## Tasks",
        "",
        "| Task | Days | Cost |",
        "| --- | ---: | ---: |",
    ]
    for task in quote["tasks"]:
        name = str(task["name"]).replace("|", "\\|")
        lines.append(f"| {name} | {format_days(task['days'])} | {_money(quote, task['cost'])} |")
    lines += [
        f"| **Total** | **{format_days(quote['total_days'])}** | **{_money(quote, quote['subtotal'])}** |",
        "",
        "## Summary",
        "",
        f"- Subtotal: {_money(quote, quote['subtotal'])}",
    ]
    if quote["discount_percent"]:
        lines.append(
            f"- Discount ({quote['discount_percent']:.1f}%): -{_money(quote, quote['discount_amount'])}"
        )
    lines.append(f"- **Total: {_money(quote, quote['total'])}**")

    if quote["conversions"]:
        lines += ["", "## Other Currencies", "", "| Currency | Total |", "| --- | ---: |"]
        for conversion in quote["conversions"]:
            lines.append(
                f"| {conversion['code']} | {format_currency(conversion['total'], conversion['symbol'])} |"
            )

    return "\n".join(lines) + "\n"


class _QuoteCanvas:
    """Thin wrapper tracking the write position and starting new pages."""

    def __init__(self, pdf: canvas.Canvas) -> None:
        self.pdf = pdf
        self.y_position = PDF_TOP_MARGIN

    def line(self, text: str, *, x: int = 50, font: str = "Helvetica", size: int = 11) -> None:
        if self.y_position < PDF_BOTTOM_MARGIN:
            self.pdf.showPage()
            self.y_position = PDF_TOP_MARGIN
        self.pdf.setFont(font, size)
        self.pdf.drawString(x, self.y_position, text)
        self.y_position -= PDF_LINE_HEIGHT

    def row(self, name: str, days: str, cost: str, *, font: str = "Helvetica") -> None:
        if self.y_position < PDF_BOTTOM_MARGIN:
            self.pdf.showPage()
            self.y_position = PDF_TOP_MARGIN
        self.pdf.setFont(font, 11)
        self.pdf.drawString(50, self.y_position, name[:60])
        self.pdf.drawRightString(400, self.y_position, days)
        self.pdf.drawRightString(540, self.y_position, cost)
        self.y_position -= PDF_LINE_HEIGHT

    def gap(self, amount: int = 10) -> None:
        self.y_position -= amount


def render_quote_pdf(quote: Mapping[str, Any], *, logo_path: Optional[Path] = None) -> io.BytesIO:
    """Create a PDF of the client quote."""

    logger.info("Generating quote PDF for %s", quote["client_name"])
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=letter)
    pdf.setTitle(f"Project Quote: {quote['client_name']}")
    writer = _QuoteCanvas(pdf)

    if logo_path is not None and logo_path.exists():
        pdf.drawImage(str(logo_path), 50, 680, width=120, height=100, preserveAspectRatio=True, mask="auto")
        writer.y_position = 660

    writer.line(f"Project Quote: {quote['client_name']}", font="Helvetica-Bold", size=16)
    writer.gap()
    writer.line(f"Date: {quote['issued_on']}")
    if quote.get("preparer_name"):
        writer.line(f"Prepared by: {quote['preparer_name']}")
    writer.line(f"Day rate: {_money(quote, quote['day_rate'])} ({quote['currency']['code']})")
    writer.gap()

    writer.row("Task", "Days", "Cost", font="Helvetica-Bold")
    for task in quote["tasks"]:
        writer.row(str(task["name"]), format_days(task["days"]), _money(quote, task["cost"]))
    writer.row("Total", format_days(quote["total_days"]), _money(quote, quote["subtotal"]), font="Helvetica-Bold")
    writer.gap()

    writer.line("Summary", font="Helvetica-Bold", size=12)
    writer.line(f"Subtotal: {_money(quote, quote['subtotal'])}")
    if quote["discount_percent"]:
        writer.line(
            f"Discount ({quote['discount_percent']:.1f}%): -{_money(quote, quote['discount_amount'])}"
        )
    writer.line(f"Total: {_money(quote, quote['total'])}", font="Helvetica-Bold")

    if quote["conversions"]:
        writer.gap()
        writer.line("Other Currencies", font="Helvetica-Bold", size=12)
        for conversion in quote["conversions"]:
            writer.line(
                f"{conversion['code']}: {format_currency(conversion['total'], conversion['symbol'])}"
            )

    pdf.save()
    buffer.seek(0)
    return buffer
