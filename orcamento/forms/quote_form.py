"""
Form validation for quote payloads (the collaborator that feeds the core).

validate_quote_form(payload)               → clean camelCase dict, or raises
validate_quote_form(payload, partial=True) → only the keys present are checked
validate_template_form(payload)            → same as full, plus required `name`
"""

import logging

from orcamento.forms.quote_record import QuoteValidationError, NONE_SENTINEL

log = logging.getLogger("orcamento.form")

REQUIRED_FIELDS = {
    "serviceOrder":    "Ordem de serviço é obrigatória",
    "date":            "Data é obrigatória",
    "companyWhatsapp": "WhatsApp é obrigatório",
    "clientName":      "Nome do cliente é obrigatório",
    "clientPhone":     "Telefone do cliente é obrigatório",
    "equipmentType":   "Tipo do equipamento é obrigatório",
    "equipmentModel":  "Modelo do equipamento é obrigatório",
    "technicianName":  "Nome do técnico é obrigatório",
}
OPTIONAL_FIELDS = ("equipmentAccessories", "equipmentPassword")


def _parse_price(value):
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip().replace(",", "."))
    except (TypeError, ValueError):
        return None


def _check_services(services, errors):
    if not isinstance(services, list) or not services:
        errors.append("Pelo menos um serviço é obrigatório")
        return []
    clean = []
    for i, svc in enumerate(services, 1):
        if not isinstance(svc, dict):
            errors.append(f"Serviço {i}: formato inválido")
            continue
        name = str(svc.get("name") or "").strip()
        price = _parse_price(svc.get("price"))
        if not name:
            errors.append(f"Serviço {i}: Nome do serviço é obrigatório")
        if price is None or price != price or price in (float("inf"), float("-inf")):
            errors.append(f"Serviço {i}: Preço inválido")
        elif price < 0:
            errors.append(f"Serviço {i}: Preço deve ser positivo")
        clean.append({"name": name, "price": price})
    return clean


def _check_diagnostics(diagnostics, errors):
    if isinstance(diagnostics, str):
        diagnostics = [diagnostics]
    if not isinstance(diagnostics, list):
        errors.append("Pelo menos um diagnóstico é obrigatório")
        return []
    clean = [str(d).strip() for d in diagnostics if str(d or "").strip()]
    if not clean:
        errors.append("Pelo menos um diagnóstico é obrigatório")
    return clean


def validate_quote_form(payload, partial: bool = False) -> dict:
    """Validate a quote payload. Raises QuoteValidationError with every problem found."""
    if not isinstance(payload, dict):
        raise QuoteValidationError("Corpo da requisição deve ser um objeto JSON")

    errors = []
    clean = {}

    for key, message in REQUIRED_FIELDS.items():
        if partial and key not in payload:
            continue
        val = str(payload.get(key) or "").strip()
        if not val:
            errors.append(message)
        clean[key] = val

    for key in OPTIONAL_FIELDS:
        if partial and key not in payload:
            continue
        val = payload.get(key)
        clean[key] = NONE_SENTINEL if val is None else str(val).strip()

    if not partial or "diagnostics" in payload:
        clean["diagnostics"] = _check_diagnostics(payload.get("diagnostics"), errors)
    if not partial or "services" in payload:
        clean["services"] = _check_services(payload.get("services"), errors)

    if errors:
        log.info("Quote form rejected: %s", "; ".join(errors))
        raise QuoteValidationError(errors)
    return clean


def validate_template_form(payload) -> dict:
    """Template = full quote + a non-empty name."""
    errors = []
    name = str((payload or {}).get("name") or "").strip() if isinstance(payload, dict) else ""
    if not name:
        errors.append("Nome do template é obrigatório")
    try:
        clean = validate_quote_form(payload)
    except QuoteValidationError as e:
        raise QuoteValidationError(errors + e.errors)
    if errors:
        raise QuoteValidationError(errors)
    clean["name"] = name
    return clean
