import re
from datetime import date

from services.quote_documents import quote_filename, render_quote_markdown, render_quote_pdf


def test_quote_filename():
    assert quote_filename("Harbour Logistics Ltd.", "json", on=date(2026, 3, 2)) == (
        "harbour_logistics_ltd__pricing_2026-03-02.json"
    )
    assert quote_filename("", "pdf", on=date(2026, 3, 2)) == "project_pricing_2026-03-02.pdf"


def test_markdown_quote(priced_engine):
    priced_engine.toggle_currency("USD", True)
    markdown = render_quote_markdown(priced_engine.prepare_client_quote(issued_on=date(2026, 3, 2)))

    assert markdown.startswith("# Project Quote: Harbour Logistics\n")
    assert "**Date:** 2026-03-02" in markdown
    assert "**Prepared by:** Sam Carter" in markdown
    assert "**Day rate:** $600.00 (NZD)" in markdown
    assert "| Discovery | 10 | $6,000.00 |" in markdown
    assert "- Discount (5.0%): -$600.00" in markdown
    assert "- **Total: $11,400.00**" in markdown
    assert "| USD | $7,068.00 |" in markdown
    assert "uplift" not in markdown.lower()


def test_markdown_without_discount_or_conversions(engine):
    engine.set_client_name("Kiwi Co")
    engine.add_task("Pipe | fittings", 1.5)
    markdown = render_quote_markdown(engine.prepare_client_quote())

    assert "Discount" not in markdown
    assert "Other Currencies" not in markdown
    assert "| Pipe \\| fittings | 1.5 | $750.00 |" in markdown


def test_pdf_quote(priced_engine):
    buffer = render_quote_pdf(priced_engine.prepare_client_quote())
    content = buffer.getvalue()

    assert content.startswith(b"%PDF")
    assert buffer.tell() == 0


def test_pdf_quote_spans_pages(engine):
    engine.set_client_name("Long Project")
    for index in range(60):
        engine.add_task(f"Task {index}", 1)

    content = render_quote_pdf(engine.prepare_client_quote()).getvalue()
    assert re.search(rb"/Count [2-9]", content)


def test_large_day_counts_use_separators(engine):
    engine.set_client_name("Big Build")
    engine.add_task("Programme", 1234567)
    engine.add_task("Review", 0.3333)
    markdown = render_quote_markdown(engine.prepare_client_quote())

    assert "| Programme | 1,234,567 |" in markdown
    assert "| Review | 0.33 |" in markdown
    assert "e+" not in markdown
