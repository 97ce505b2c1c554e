# routes.py: quotes, saved templates, PDF export
# Registered by app.create_app(); the store lives in app.config["STORAGE"].

import io
import logging

from flask import Blueprint, current_app, jsonify, request, send_file

from orcamento.core.security import auth_required, rate_limit
from orcamento.forms.export import build_quote_pdf, load_logo, quote_filename
from orcamento.forms.quote_form import validate_quote_form, validate_template_form
from orcamento.forms.quote_record import QuoteRecord, QuoteValidationError, NONE_SENTINEL
from orcamento.forms.quote_utils import build_whatsapp_link, format_date, generate_service_order

log = logging.getLogger("orcamento.api")

bp = Blueprint("orcamento", __name__)

NOT_FOUND = "Orçamento não encontrado"
TEMPLATE_NOT_FOUND = "Template não encontrado"
PDF_FAILED = "Erro ao gerar PDF. Tente novamente."
SHARE_FAILED = "Erro ao gerar link. Tente novamente."


def _storage():
    return current_app.config["STORAGE"]


def _error(message, status):
    return jsonify({"message": message}), status


def _send_pdf(record):
    """Render in memory and stream it; each request gets its own bytes."""
    try:
        record.validate()
        logo = load_logo(current_app.config.get("LOGO_SOURCE"))
        pdf_bytes, doc_layout = build_quote_pdf(record, logo)
    except Exception as e:
        log.error("PDF render failed for OS %s: %s", record.service_order, e)
        return _error(PDF_FAILED, 500)
    log.info("PDF served for OS %s (%d page(s))", record.service_order, doc_layout.page_count,
             extra={"service_order": record.service_order, "pages": doc_layout.page_count,
                    "total": str(doc_layout.total)})
    return send_file(io.BytesIO(pdf_bytes), mimetype="application/pdf",
                     as_attachment=True, download_name=quote_filename(record))


# ═══════════════════════════════════════════════════════════════════════════════
# Health
# ═══════════════════════════════════════════════════════════════════════════════

@bp.route("/api/health")
def api_health():
    return jsonify({"ok": True, "storage": _storage().backend})


# ═══════════════════════════════════════════════════════════════════════════════
# QUOTES
# ═══════════════════════════════════════════════════════════════════════════════

@bp.route("/api/quotes/defaults")
@auth_required
def api_quote_defaults():
    """Blank form pre-filled with the shop defaults and a fresh service order."""
    settings = current_app.config["ORCAMENTO_SETTINGS"]
    return jsonify({
        "serviceOrder": generate_service_order(),
        "date": format_date(),
        "companyWhatsapp": settings["company_whatsapp"],
        "clientName": "",
        "clientPhone": "",
        "equipmentType": "",
        "equipmentModel": "",
        "equipmentAccessories": NONE_SENTINEL,
        "equipmentPassword": NONE_SENTINEL,
        "diagnostics": [""],
        "services": [{"name": "", "price": 0}],
        "technicianName": settings["technician_name"],
    })


@bp.route("/api/quotes", methods=["POST"])
@auth_required
def api_create_quote():
    try:
        data = validate_quote_form(request.get_json(silent=True))
    except QuoteValidationError as e:
        return _error(str(e), 400)
    return jsonify(_storage().create_quote(data))


@bp.route("/api/quotes")
@auth_required
def api_list_quotes():
    return jsonify(_storage().get_all_quotes())


@bp.route("/api/quotes/<int:quote_id>")
@auth_required
def api_get_quote(quote_id):
    quote = _storage().get_quote(quote_id)
    if not quote:
        return _error(NOT_FOUND, 404)
    return jsonify(quote)


@bp.route("/api/quotes/<int:quote_id>", methods=["PUT"])
@auth_required
def api_update_quote(quote_id):
    try:
        changes = validate_quote_form(request.get_json(silent=True), partial=True)
    except QuoteValidationError as e:
        return _error(str(e), 400)
    quote = _storage().update_quote(quote_id, changes)
    if not quote:
        return _error(NOT_FOUND, 404)
    return jsonify(quote)


@bp.route("/api/quotes/<int:quote_id>", methods=["DELETE"])
@auth_required
def api_delete_quote(quote_id):
    if not _storage().delete_quote(quote_id):
        return _error(NOT_FOUND, 404)
    return jsonify({"message": "Orçamento excluído com sucesso"})


# ═══════════════════════════════════════════════════════════════════════════════
# PDF / SHARE
# ═══════════════════════════════════════════════════════════════════════════════

@bp.route("/api/quotes/<int:quote_id>/pdf")
@auth_required
@rate_limit("heavy")
def api_quote_pdf(quote_id):
    row = _storage().get_quote(quote_id)
    if not row:
        return _error(NOT_FOUND, 404)
    try:
        record = QuoteRecord.from_persisted(row)
    except QuoteValidationError as e:
        log.error("Stored quote #%d cannot be decoded: %s", quote_id, e)
        return _error(PDF_FAILED, 500)
    return _send_pdf(record)


@bp.route("/api/quotes/pdf", methods=["POST"])
@auth_required
@rate_limit("heavy")
def api_preview_pdf():
    """Render a PDF straight from a form payload, nothing is stored."""
    try:
        data = validate_quote_form(request.get_json(silent=True))
    except QuoteValidationError as e:
        return _error(str(e), 400)
    return _send_pdf(QuoteRecord.from_dict(data))


@bp.route("/api/quotes/<int:quote_id>/whatsapp")
@auth_required
def api_quote_whatsapp(quote_id):
    row = _storage().get_quote(quote_id)
    if not row:
        return _error(NOT_FOUND, 404)
    try:
        record = QuoteRecord.from_persisted(row)
    except QuoteValidationError as e:
        log.error("Stored quote #%d cannot be decoded: %s", quote_id, e)
        return _error(SHARE_FAILED, 500)
    return jsonify({"url": build_whatsapp_link(record)})


# ═══════════════════════════════════════════════════════════════════════════════
# SAVED TEMPLATES
# ═══════════════════════════════════════════════════════════════════════════════

@bp.route("/api/saved-quotes")
@auth_required
def api_list_saved_quotes():
    return jsonify(_storage().get_all_saved_quotes())


@bp.route("/api/saved-quotes", methods=["POST"])
@auth_required
def api_create_saved_quote():
    try:
        data = validate_template_form(request.get_json(silent=True))
    except QuoteValidationError as e:
        return _error(str(e), 400)
    return jsonify(_storage().create_saved_quote(data))


@bp.route("/api/saved-quotes/<int:template_id>", methods=["DELETE"])
@auth_required
def api_delete_saved_quote(template_id):
    if not _storage().delete_saved_quote(template_id):
        return _error(TEMPLATE_NOT_FOUND, 404)
    return jsonify({"message": "Template excluído com sucesso"})
