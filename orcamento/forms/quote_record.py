"""
Quote Record — the immutable input of the rendering pipeline.

Wire format (API payloads and stored rows) uses camelCase keys:
    serviceOrder, date, companyWhatsapp, clientName, clientPhone,
    equipmentType, equipmentModel, equipmentAccessories, equipmentPassword,
    diagnostics[], services[{name, price}], technicianName

Stored rows additionally carry id, createdAt, total and `services` as JSON text.
"""

import json
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Tuple

from orcamento.forms.quote_utils import to_money, calculate_total

NONE_SENTINEL = "Nenhum"

# snake_case attribute ↔ camelCase wire key
FIELD_MAP = (
    ("service_order",         "serviceOrder"),
    ("date",                  "date"),
    ("company_whatsapp",      "companyWhatsapp"),
    ("client_name",           "clientName"),
    ("client_phone",          "clientPhone"),
    ("equipment_type",        "equipmentType"),
    ("equipment_model",       "equipmentModel"),
    ("equipment_accessories", "equipmentAccessories"),
    ("equipment_password",    "equipmentPassword"),
    ("technician_name",       "technicianName"),
)

REQUIRED_TEXT = ("service_order", "date", "company_whatsapp", "client_name",
                 "client_phone", "equipment_type", "equipment_model", "technician_name")


class QuoteValidationError(ValueError):
    """Raised when a quote payload or record breaks its contract."""

    def __init__(self, errors):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


@dataclass(frozen=True)
class ServiceItem:
    name: str
    price: Decimal

    @classmethod
    def from_dict(cls, data: dict) -> "ServiceItem":
        try:
            price = Decimal(str(data.get("price", 0)))
        except InvalidOperation:
            raise QuoteValidationError(f"Preço inválido para o serviço {data.get('name', '')!r}")
        return cls(name=str(data.get("name", "")).strip(), price=price)

    def to_dict(self) -> dict:
        return {"name": self.name, "price": float(to_money(self.price))}


@dataclass(frozen=True)
class QuoteRecord:
    service_order: str
    date: str
    company_whatsapp: str
    client_name: str
    client_phone: str
    equipment_type: str
    equipment_model: str
    equipment_accessories: str
    equipment_password: str
    diagnostics: Tuple[str, ...]
    services: Tuple[ServiceItem, ...]
    technician_name: str

    @property
    def total(self) -> Decimal:
        return calculate_total(self.services)

    # ── Construction ─────────────────────────────────────────────────────────

    @classmethod
    def from_dict(cls, data: dict) -> "QuoteRecord":
        """Build from a camelCase payload. Blank diagnostics are dropped."""
        kwargs = {}
        for attr, key in FIELD_MAP:
            val = data.get(key)
            kwargs[attr] = "" if val is None else str(val).strip()
        for attr in ("equipment_accessories", "equipment_password"):
            if data.get(dict(FIELD_MAP)[attr]) is None:
                kwargs[attr] = NONE_SENTINEL

        diagnostics = data.get("diagnostics") or []
        if isinstance(diagnostics, str):
            diagnostics = [diagnostics]
        kwargs["diagnostics"] = tuple(str(d).strip() for d in diagnostics if str(d).strip())

        services = data.get("services") or []
        if isinstance(services, str):
            services = decode_services(services)
        kwargs["services"] = tuple(
            s if isinstance(s, ServiceItem) else ServiceItem.from_dict(s) for s in services)
        return cls(**kwargs)

    @classmethod
    def from_persisted(cls, row: dict) -> "QuoteRecord":
        """Build from a stored row whose `services` is JSON text."""
        data = dict(row)
        data["services"] = decode_services(row.get("services", "[]"))
        return cls.from_dict(data)

    def to_dict(self) -> dict:
        out = {key: getattr(self, attr) for attr, key in FIELD_MAP}
        out["diagnostics"] = list(self.diagnostics)
        out["services"] = [s.to_dict() for s in self.services]
        return out

    # ── Contract ─────────────────────────────────────────────────────────────

    def validate(self) -> "QuoteRecord":
        """Fail fast on anything that would render a malformed document."""
        errors = []
        for attr in REQUIRED_TEXT:
            if not getattr(self, attr):
                errors.append(f"Campo obrigatório vazio: {attr}")
        if not self.diagnostics:
            errors.append("Pelo menos um diagnóstico é obrigatório")
        if not self.services:
            errors.append("Pelo menos um serviço é obrigatório")
        for i, s in enumerate(self.services):
            if not s.name:
                errors.append(f"Serviço {i + 1}: nome é obrigatório")
            if not s.price.is_finite() or s.price < 0:
                errors.append(f"Serviço {i + 1}: preço deve ser positivo")
        if errors:
            raise QuoteValidationError(errors)
        return self


def encode_services(services) -> str:
    """Stored form of the services list: JSON text."""
    items = [s.to_dict() if isinstance(s, ServiceItem) else
             {"name": s.get("name", ""), "price": s.get("price", 0)} for s in services]
    return json.dumps(items, ensure_ascii=False)


def decode_services(text) -> list:
    """JSON text → list of {name, price} dicts. Already-decoded lists pass through."""
    if isinstance(text, list):
        return text
    try:
        items = json.loads(text or "[]")
    except (TypeError, json.JSONDecodeError) as e:
        raise QuoteValidationError(f"Lista de serviços corrompida: {e}")
    if not isinstance(items, list):
        raise QuoteValidationError("Lista de serviços corrompida: esperado uma lista")
    return items
