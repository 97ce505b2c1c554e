"""
Orçamento Document Renderer
===========================
Second pass of the PDF pipeline: paints a DocumentLayout onto a reportlab
canvas. Every position comes from layout.py; this module only draws.

    render_document(c, record, doc_layout, logo=None)

`logo` is an already-decoded ImageReader (or None). When it is None the logo
slot is left empty.
"""

import logging

from reportlab.lib.utils import ImageReader

from orcamento.forms.layout import (
    PAGE_H, MARGIN, RIGHT_EDGE, CONTENT_W, STYLE,
)

log = logging.getLogger("orcamento.pdf")


def Y(top_y):
    """Top-origin y → reportlab (bottom-origin) y."""
    return PAGE_H - top_y


# ═══════════════════════════════════════════════════════════════════════════════
# PRIMITIVES
# ═══════════════════════════════════════════════════════════════════════════════

def _box(c, x, top, w, h, fill=None, stroke=None, line_w=0.5):
    rl_y = Y(top) - h
    if fill is not None:
        c.setFillColor(fill)
        c.rect(x, rl_y, w, h, fill=1, stroke=0)
    if stroke is not None:
        c.setStrokeColor(stroke)
        c.setLineWidth(line_w)
        c.rect(x, rl_y, w, h, fill=0, stroke=1)
    return rl_y


def _text(c, x, baseline, txt, font, size, color, align="left"):
    c.setFont(font, size)
    c.setFillColor(color)
    s = str(txt) if txt else ""
    if align == "right":
        c.drawRightString(x, Y(baseline), s)
    elif align == "center":
        c.drawCentredString(x, Y(baseline), s)
    else:
        c.drawString(x, Y(baseline), s)


def _section_title(c, title, top):
    st = STYLE["section_title"]
    _text(c, MARGIN, top + st["baseline"], title, st["font"], st["size"], st["color"])


# ═══════════════════════════════════════════════════════════════════════════════
# SECTIONS
# ═══════════════════════════════════════════════════════════════════════════════

def draw_logo(c, logo: ImageReader, box):
    """Scale into the fixed logo slot, aspect preserved, anchored top-left."""
    x, top, max_w, max_h = box
    iw, ih = logo.getSize()
    scale = min(max_w / iw, max_h / ih)
    dw, dh = iw * scale, ih * scale
    c.drawImage(logo, x, Y(top) - dh, width=dw, height=dh,
                preserveAspectRatio=True, mask="auto")
    return dw, dh


def draw_header(c, sec, logo=None):
    st = STYLE["header"]
    if logo is not None:
        draw_logo(c, logo, sec.logo_box)

    for i, line in enumerate(sec.lines):
        for j, run in enumerate(line.runs):
            # title and values in the main colour, labels muted
            color = st["label_color"] if (i > 0 and j == 0) else st["color"]
            _text(c, run.x, line.baseline, run.text, run.font, run.size, color)

    c.setStrokeColor(st["rule_color"])
    c.setLineWidth(st["rule_w"])
    c.line(MARGIN, Y(sec.bottom), RIGHT_EDGE, Y(sec.bottom))


def _draw_card(c, card, top, height):
    st = STYLE["card"]
    _box(c, card.x, top, card.width, height, fill=st["bg"])
    # accent strip on top of the card
    _box(c, card.x, top, card.width, 3, fill=st["accent"])
    _text(c, card.x + st["padding"], top + st["title_baseline"], card.title,
          st["title_font"], st["title_size"], st["color"])

    for fld in card.fields:
        _text(c, fld.label_x, fld.first_baseline, fld.label,
              st["label_font"], st["label_size"], st["label_color"])
        baseline = fld.first_baseline
        for ln in fld.value_lines:
            _text(c, fld.value_x, baseline, ln, st["value_font"], st["value_size"], st["color"])
            baseline += st["line_h"]


def draw_cards(c, sec):
    _draw_card(c, sec.client, sec.top, sec.height)
    _draw_card(c, sec.equipment, sec.top, sec.height)


def draw_diagnostics(c, sec):
    st = STYLE["diagnostics"]
    _section_title(c, st["title"], sec.top)
    _box(c, MARGIN, sec.panel_top, CONTENT_W, sec.panel_height, fill=st["bg"])
    _box(c, MARGIN, sec.panel_top, st["accent_w"], sec.panel_height, fill=st["accent"])

    for ln in sec.lines:
        if ln.marker:
            _text(c, sec.marker_x, ln.baseline, st["marker"], st["font"], st["size"], st["accent"])
        _text(c, sec.text_x, ln.baseline, ln.text, st["font"], st["size"], st["color"])


def draw_services(c, sec):
    st = STYLE["services"]
    pad = st["cell_pad"]
    name_x = MARGIN + pad
    price_x = RIGHT_EDGE - pad

    _section_title(c, st["title"], sec.top)

    # ── Header row ────────────────────────────────────────────────────────────
    hdr = sec.header_row
    _box(c, MARGIN, hdr.top, CONTENT_W, hdr.height, fill=st["header_bg"])
    hdr_base = hdr.top + hdr.height / 2 + st["header_size"] / 2 - 1.5
    _text(c, name_x, hdr_base, hdr.name_lines[0], st["header_font"], st["header_size"], st["header_color"])
    _text(c, price_x, hdr_base, hdr.price_text, st["header_font"], st["header_size"],
          st["header_color"], "right")

    # ── Body rows ─────────────────────────────────────────────────────────────
    for row in sec.body_rows:
        if row.shaded:
            _box(c, MARGIN, row.top, CONTENT_W, row.height, fill=st["shade"])
        baseline = row.top + st["row_pad"] / 2 + st["row_line_h"] - 2.5
        for ln in row.name_lines:
            _text(c, name_x, baseline, ln, st["font"], st["size"], st["color"])
            baseline += st["row_line_h"]
        _text(c, price_x, row.top + st["row_pad"] / 2 + st["row_line_h"] - 2.5,
              row.price_text, st["price_font"], st["size"], st["color"], "right")
        c.setStrokeColor(st["rule_color"])
        c.setLineWidth(0.3)
        c.line(MARGIN, Y(row.top + row.height), RIGHT_EDGE, Y(row.top + row.height))

    # ── Total row ─────────────────────────────────────────────────────────────
    tot = sec.total_row
    _box(c, MARGIN, tot.top, CONTENT_W, tot.height, fill=st["total_bg"])
    tot_base = tot.top + tot.height / 2 + st["total_size"] / 2 - 2
    _text(c, name_x, tot_base, tot.name_lines[0], st["total_font"], st["total_size"], st["color"])
    _text(c, price_x, tot_base, tot.price_text, st["total_font"], st["total_size"],
          st["total_color"], "right")

    # column divider + outer frame
    c.setStrokeColor(st["rule_color"])
    c.setLineWidth(0.5)
    div_x = MARGIN + sec.name_w
    c.line(div_x, Y(sec.table_top), div_x, Y(sec.bottom))
    _box(c, MARGIN, sec.table_top, CONTENT_W, sec.bottom - sec.table_top, stroke=st["rule_color"])


def draw_warranty(c, sec):
    st = STYLE["warranty"]
    _box(c, MARGIN, sec.top, CONTENT_W, sec.height, fill=st["bg"])
    baseline = sec.top + sec.height / 2 + st["size"] / 2 - 2
    _text(c, MARGIN + CONTENT_W / 2, baseline, sec.text, st["font"], st["size"], st["color"], "center")


def draw_signatures(c, sec):
    st = STYLE["signatures"]
    for col in sec.columns:
        center = col.x + col.width / 2
        _text(c, col.x, sec.top + st["label_baseline"], col.label,
              st["label_font"], st["label_size"], st["label_color"])
        c.setStrokeColor(st["rule_color"])
        c.setLineWidth(st["rule_w"])
        rule_y = Y(sec.top + st["rule_offset"])
        c.line(col.x, rule_y, col.x + col.width, rule_y)
        _text(c, center, sec.top + st["name_baseline"], col.name,
              st["name_font"], st["name_size"], st["color"], "center")
        _text(c, center, sec.top + st["caption_baseline"], col.caption,
              st["caption_font"], st["caption_size"], st["label_color"], "center")


def draw_footer(c, page_num, page_count):
    st = STYLE["footer"]
    c.setFont(st["font"], st["size"])
    c.setFillColor(st["color"])
    c.drawRightString(RIGHT_EDGE, st["baseline_from_bottom"], f"Página {page_num} de {page_count}")


# ═══════════════════════════════════════════════════════════════════════════════
# DOCUMENT
# ═══════════════════════════════════════════════════════════════════════════════

_PAINTERS = {
    "cards":       draw_cards,
    "diagnostics": draw_diagnostics,
    "services":    draw_services,
    "warranty":    draw_warranty,
    "signatures":  draw_signatures,
}


def render_document(c, record, doc_layout, logo=None):
    """Paint all sections in layout order; showPage between pages.

    Returns the number of pages emitted.
    """
    c.setTitle(f"Orçamento {record.service_order}")
    c.setAuthor(record.technician_name)
    c.setSubject(f"Orçamento {record.service_order} - {record.client_name}")

    page = 0
    for sec in doc_layout.sections:
        while sec.page > page:
            draw_footer(c, page + 1, doc_layout.page_count)
            c.showPage()
            page += 1
            log.debug("Started page %d for %s", page + 1, sec.name)
        if sec.name == "header":
            draw_header(c, sec, logo)
        else:
            _PAINTERS[sec.name](c, sec)

    draw_footer(c, page + 1, doc_layout.page_count)
    c.showPage()
    return page + 1
