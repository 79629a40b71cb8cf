"""
Invoice rendering for rent and booking payments.

HTML and plain-text bodies go into reminder emails; the PDF is offered as a
download to landlords and portal tenants.
"""
import os
import unicodedata
from datetime import date
from decimal import Decimal
from html import escape
from typing import List, Optional, Tuple

from fpdf import FPDF

from property_crm.core.config import settings
from property_crm.models.payment import Payment


def format_currency(amount, currency: str = "ZAR") -> str:
    value = Decimal(str(amount or 0))
    symbol = "R" if currency == "ZAR" else f"{currency} "
    return f"{symbol}{value:,.2f}"


def format_date(value: Optional[date]) -> str:
    if not value:
        return "N/A"
    return value.strftime("%d %B %Y")


def invoice_number(payment: Payment) -> str:
    return payment.invoice_number or payment.payment_reference


def _property_for(payment: Payment):
    if payment.property is not None:
        return payment.property
    if payment.tenant is not None and payment.tenant.active_lease is not None:
        return payment.tenant.active_lease.property
    if payment.booking is not None:
        return payment.booking.property
    return None


def _bill_to(payment: Payment) -> Tuple[str, Optional[str]]:
    if payment.tenant is not None:
        return payment.tenant.full_name, payment.tenant.email
    if payment.booking is not None:
        return payment.booking.guest_name, payment.booking.guest_email
    return "Tenant", None


def _banking_rows(payment: Payment) -> List[Tuple[str, str]]:
    owner = payment.owner
    rows = [
        ("Bank", owner.bank_name),
        ("Account holder", owner.bank_account_holder),
        ("Account number", owner.bank_account_number),
        ("Branch code", owner.bank_branch_code),
        ("Account type", owner.bank_account_type),
        ("Reference", invoice_number(payment)),
    ]
    return [(label, value) for label, value in rows if value]


def _description(payment: Payment) -> str:
    if payment.description:
        return payment.description
    prop = _property_for(payment)
    label = payment.payment_type.replace("_", " ").title()
    return f"{label} - {prop.name}" if prop else label


def render_invoice_html(payment: Payment) -> str:
    owner = payment.owner
    name, email = _bill_to(payment)
    prop = _property_for(payment)
    amount = format_currency(payment.amount, payment.currency)

    banking = "".join(
        f"<tr><td><strong>{escape(label)}</strong></td><td>{escape(str(value))}</td></tr>"
        for label, value in _banking_rows(payment)
    )
    property_line = f"<p>{escape(prop.name)}<br>{escape(prop.address)}</p>" if prop else ""

    return f"""<!DOCTYPE html>
<html lang="en">
<head><meta charset="UTF-8"><title>Invoice {escape(invoice_number(payment))}</title></head>
<body style="font-family: Arial, sans-serif; color: #333; max-width: 700px; margin: 0 auto;">
  <h1 style="color: #1e40af;">RENTAL INVOICE</h1>
  <p>Invoice #: <strong>{escape(invoice_number(payment))}</strong> ({escape(payment.status.upper())})</p>
  <h3>From</h3>
  <p><strong>{escape(owner.display_name)}</strong><br>{escape(owner.email)}</p>
  <h3>Bill To</h3>
  <p><strong>{escape(name)}</strong><br>{escape(email or "")}</p>
  {property_line}
  <p>Invoice date: {format_date(payment.created_at.date() if payment.created_at else None)}<br>
     Due date: <strong>{format_date(payment.due_date)}</strong></p>
  <table style="width: 100%; border-collapse: collapse;">
    <tr><th align="left">Description</th><th align="right">Amount</th></tr>
    <tr><td>{escape(_description(payment))}</td><td align="right">{amount}</td></tr>
  </table>
  <h2 style="text-align: right;">Total due: {amount}</h2>
  <h3>Banking details</h3>
  <table>{banking}</table>
  <p>Please use the invoice number as your payment reference.</p>
</body>
</html>"""


def render_invoice_text(payment: Payment) -> str:
    owner = payment.owner
    name, _ = _bill_to(payment)
    lines = [
        f"RENTAL INVOICE {invoice_number(payment)}",
        "",
        f"From: {owner.display_name} ({owner.email})",
        f"Bill to: {name}",
        f"Due date: {format_date(payment.due_date)}",
        "",
        f"{_description(payment)}: {format_currency(payment.amount, payment.currency)}",
        "",
        "Banking details:",
    ]
    lines.extend(f"  {label}: {value}" for label, value in _banking_rows(payment))
    lines.append("")
    lines.append("Please use the invoice number as your payment reference.")
    return "\n".join(lines)


class InvoicePDF(FPDF):
    """FPDF with one font family for the whole invoice.

    The core Helvetica font only covers Latin-1; set INVOICE_FONT_PATH to a
    Unicode TTF (e.g. DejaVuSans.ttf) to print names like "Nguyễn" as-is.
    Without it, text is folded to its closest Latin-1 spelling.
    """

    def __init__(self):
        super().__init__()
        self.invoice_family = "Helvetica"
        self.unicode_font = False
        font_path = settings.INVOICE_FONT_PATH
        if font_path and os.path.exists(font_path):
            self.add_font("InvoiceSans", "", font_path)
            self.add_font("InvoiceSans", "B", font_path)
            self.invoice_family = "InvoiceSans"
            self.unicode_font = True

    def invoice_font(self, style: str = "", size: int = 10):
        self.set_font(self.invoice_family, style, size)

    def clean(self, value) -> str:
        text = str(value)
        if self.unicode_font:
            return text
        return to_latin1(text)


def to_latin1(text: str) -> str:
    try:
        text.encode("latin-1")
        return text
    except UnicodeEncodeError:
        pass
    folded = "".join(
        c for c in unicodedata.normalize("NFKD", text) if not unicodedata.combining(c)
    )
    return folded.encode("latin-1", "replace").decode("latin-1")


def _pdf_section_title(pdf: InvoicePDF, title: str):
    pdf.invoice_font("B", 12)
    pdf.set_fill_color(37, 99, 235)
    pdf.set_text_color(255, 255, 255)
    pdf.cell(0, 8, f"  {title}", new_x="LMARGIN", new_y="NEXT", fill=True)
    pdf.set_text_color(0, 0, 0)
    pdf.ln(2)


def _pdf_rows(pdf: InvoicePDF, rows: List[Tuple[str, str]]):
    page_w = pdf.w - pdf.l_margin - pdf.r_margin
    for label, value in rows:
        pdf.invoice_font("B", 10)
        pdf.cell(page_w * 0.35, 6, label)
        pdf.invoice_font("", 10)
        pdf.cell(page_w * 0.65, 6, pdf.clean(value), new_x="LMARGIN", new_y="NEXT")
    pdf.ln(4)


def render_invoice_pdf(payment: Payment) -> bytes:
    owner = payment.owner
    name, email = _bill_to(payment)
    prop = _property_for(payment)
    currency_amount = format_currency(payment.amount, payment.currency)

    pdf = InvoicePDF()
    pdf.set_auto_page_break(auto=True, margin=15)
    pdf.add_page()

    pdf.invoice_font("B", 18)
    pdf.cell(0, 10, "RENTAL INVOICE", new_x="LMARGIN", new_y="NEXT", align="C")
    pdf.invoice_font("", 10)
    pdf.cell(0, 6, pdf.clean(f"Invoice #: {invoice_number(payment)}  |  Status: {payment.status.upper()}"),
             new_x="LMARGIN", new_y="NEXT", align="C")
    pdf.ln(6)

    _pdf_section_title(pdf, "From")
    _pdf_rows(pdf, [("Name", owner.display_name), ("Email", owner.email)])

    _pdf_section_title(pdf, "Bill To")
    bill_rows = [("Name", name)]
    if email:
        bill_rows.append(("Email", email))
    if prop:
        bill_rows.append(("Property", f"{prop.name}, {prop.address}"))
    _pdf_rows(pdf, bill_rows)

    _pdf_section_title(pdf, "Invoice")
    _pdf_rows(
        pdf,
        [
            ("Description", _description(payment)),
            ("Due date", format_date(payment.due_date)),
            ("Amount", currency_amount),
        ],
    )

    banking = _banking_rows(payment)
    if banking:
        _pdf_section_title(pdf, "Banking Details")
        _pdf_rows(pdf, banking)

    return bytes(pdf.output())
