"""
Orçamento Export Driver
=======================
Orchestrates one PDF export:

    1. prepare the logo (single attempt, resolved before any drawing)
    2. compute the layout (layout.py)
    3. paint it on an in-memory canvas (quote_pdf.py)
    4. write the file atomically under its final name

export_quote_pdf() never raises: it returns
    {"ok": True,  "path", "filename", "total", "total_display", "pages"}
    {"ok": False, "error"}
"""

import io
import os
import re
import logging
import tempfile
from typing import Optional

import requests
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from orcamento.core import paths
from orcamento.core.settings import load_config
from orcamento.forms.layout import PAGE_W, PAGE_H, compute_layout
from orcamento.forms.quote_pdf import render_document
from orcamento.forms.quote_record import QuoteValidationError
from orcamento.forms.quote_utils import format_currency

log = logging.getLogger("orcamento.export")


# ═══════════════════════════════════════════════════════════════════════════════
# Logo
# ═══════════════════════════════════════════════════════════════════════════════

def _is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def load_logo(source: Optional[str] = None, timeout: float = None) -> Optional[ImageReader]:
    """Fetch and decode the logo. Any failure → None (logged), never raises."""
    source = source or paths.LOGO_SOURCE
    if timeout is None:
        timeout = load_config()["logo_timeout"]
    try:
        if _is_url(source):
            resp = requests.get(source, timeout=timeout)
            if resp.status_code != 200:
                log.warning("Logo fetch %s returned %s, rendering without logo",
                            source, resp.status_code)
                return None
            raw = resp.content
        else:
            if not os.path.exists(source):
                log.warning("Logo not found at %s, rendering without logo", source)
                return None
            with open(source, "rb") as f:
                raw = f.read()
        img = ImageReader(io.BytesIO(raw))
        img.getSize()
        img.getRGBData()  # full decode, catches truncated files
        return img
    except Exception as e:
        log.warning("Logo load failed (%s): %s, rendering without logo", source, e)
        return None


# ═══════════════════════════════════════════════════════════════════════════════
# Rendering
# ═══════════════════════════════════════════════════════════════════════════════

_UNSAFE = re.compile(r"[\\/]")


def quote_filename(record) -> str:
    """Orcamento_<OS>_<client name, whitespace → underscores>.pdf"""
    client = re.sub(r"\s+", "_", record.client_name.strip())
    order = re.sub(r"\s+", "_", record.service_order.strip())
    return _UNSAFE.sub("_", f"Orcamento_{order}_{client}.pdf")


def build_quote_pdf(record, logo: Optional[ImageReader] = None, warranty_text: str = None):
    """Layout + render into memory. Returns (pdf_bytes, DocumentLayout)."""
    if warranty_text is None:
        warranty_text = load_config()["warranty_text"]
    doc_layout = compute_layout(record, warranty_text=warranty_text)

    buf = io.BytesIO()
    # invariant=1: no timestamps/random IDs, so equal input → equal bytes
    c = canvas.Canvas(buf, pagesize=(PAGE_W, PAGE_H), invariant=1)
    pages = render_document(c, record, doc_layout, logo)
    c.save()

    if pages != doc_layout.page_count:
        raise RuntimeError(f"Rendered {pages} pages, layout planned {doc_layout.page_count}")
    return buf.getvalue(), doc_layout


def render_quote_pdf(record, logo: Optional[ImageReader] = None, warranty_text: str = None) -> bytes:
    pdf_bytes, _ = build_quote_pdf(record, logo, warranty_text)
    return pdf_bytes


# ═══════════════════════════════════════════════════════════════════════════════
# Export
# ═══════════════════════════════════════════════════════════════════════════════

def export_quote_pdf(record, output_dir: str = None, logo_source: str = None,
                     warranty_text: str = None) -> dict:
    """Render `record` to <output_dir>/<quote_filename>. Single outcome dict."""
    try:
        record.validate()
    except QuoteValidationError as e:
        log.error("Export rejected for OS %s: %s", getattr(record, "service_order", "?"), e)
        return {"ok": False, "error": str(e)}

    logo = load_logo(logo_source)

    out_dir = output_dir or paths.OUTPUT_DIR
    filename = quote_filename(record)
    path = os.path.join(out_dir, filename)
    tmp_path = None
    try:
        pdf_bytes, doc_layout = build_quote_pdf(record, logo, warranty_text)
        os.makedirs(out_dir, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".orcamento-", suffix=".pdf", dir=out_dir)
        with os.fdopen(fd, "wb") as f:
            f.write(pdf_bytes)
        os.replace(tmp_path, path)
        tmp_path = None
    except Exception as e:
        log.exception("Export failed for OS %s", record.service_order)
        return {"ok": False, "error": f"Erro ao gerar PDF: {e}"}
    finally:
        if tmp_path and os.path.exists(tmp_path):
            os.remove(tmp_path)

    total = doc_layout.total
    log.info("Quote OS %s exported: %s, %d page(s), logo=%s → %s",
             record.service_order, format_currency(total), doc_layout.page_count,
             "yes" if logo else "no", path,
             extra={"service_order": record.service_order, "total": str(total),
                    "pages": doc_layout.page_count})
    return {
        "ok": True,
        "path": path,
        "filename": filename,
        "total": float(total),
        "total_display": format_currency(total),
        "pages": doc_layout.page_count,
        "logo": logo is not None,
    }


# ═══════════════════════════════════════════════════════════════════════════════
# SELF-TEST
# ═══════════════════════════════════════════════════════════════════════════════

if __name__ == "__main__":
    from orcamento.forms.quote_record import QuoteRecord

    sample = QuoteRecord.from_dict({
        "serviceOrder": "00001",
        "date": "19/10/2026",
        "companyWhatsapp": "19993088395",
        "clientName": "Maria da Silva",
        "clientPhone": "1933088395",
        "equipmentType": "Notebook",
        "equipmentModel": "Dell Inspiron 15 3000",
        "equipmentAccessories": "Carregador original e mochila",
        "equipmentPassword": "",
        "diagnostics": ["Não liga", "Tela com manchas"],
        "services": [
            {"name": "Troca do conector de carga", "price": 150.00},
            {"name": "Limpeza interna e troca de pasta térmica", "price": 75.50},
        ],
        "technicianName": "ALEXANDRE FREITAS",
    })
    r = export_quote_pdf(sample, output_dir="/tmp/orcamentos")
    print(r)
