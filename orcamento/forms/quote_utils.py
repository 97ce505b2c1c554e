"""Formatting helpers shared by the PDF, the API and the stores."""

import re
import random
from datetime import datetime, date
from decimal import Decimal, ROUND_HALF_UP
from urllib.parse import quote

CURRENCY_PREFIX = "R$ "
CENTS = Decimal("0.01")


def to_money(amount) -> Decimal:
    """Round to cents, half-up. Floats go through str() so 0.1 stays 0.1."""
    if not isinstance(amount, Decimal):
        amount = Decimal(str(amount))
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def format_currency(amount) -> str:
    """1234.5 → 'R$ 1234,50' (no thousands separator)."""
    return f"{CURRENCY_PREFIX}{to_money(amount):.2f}".replace(".", ",")


def format_phone(raw: str) -> str:
    """(DD) DDDDD-DDDD for 11 digits, (DD) DDDD-DDDD for 10, else unchanged."""
    digits = re.sub(r"\D", "", raw or "")
    if len(digits) == 11:
        return f"({digits[:2]}) {digits[2:7]}-{digits[7:]}"
    if len(digits) == 10:
        return f"({digits[:2]}) {digits[2:6]}-{digits[6:]}"
    return raw


def _price_of(service):
    if isinstance(service, dict):
        return service.get("price", 0) or 0
    return service.price


def calculate_total(services) -> Decimal:
    """Exact sum of service prices, then rounded to cents. Empty → Decimal("0.00")."""
    total = sum((Decimal(str(_price_of(s))) for s in services), Decimal("0"))
    return to_money(total)


def generate_service_order(now: datetime = None) -> str:
    """YYMMDD + 3 random digits, e.g. 261019042."""
    now = now or datetime.now()
    return f"{now:%y%m%d}{random.randint(0, 999):03d}"


def format_date(d: date = None) -> str:
    """pt-BR display date: 19/10/2026."""
    d = d or date.today()
    return d.strftime("%d/%m/%Y")


def build_whatsapp_link(record) -> str:
    """wa.me share link with the quote summary, sent to the company number."""
    phone = re.sub(r"\D", "", record.company_whatsapp)
    total = calculate_total(record.services)
    message = (
        "Olá! Segue o orçamento dos serviços realizados.\n\n"
        f"Cliente: {record.client_name}\n"
        f"OS: {record.service_order}\n"
        f"Total: {format_currency(total)}\n\n"
        "Obrigado!"
    )
    return f"https://wa.me/55{phone}?text={quote(message, safe='')}"
