"""
Orçamento Layout Engine
=======================
First pass of the PDF pipeline: computes every section's geometry from the
quote content. Nothing is drawn here; quote_pdf.py paints what this returns.

Coordinates are TOP-ORIGIN points (y grows downward from the top edge of the
page). The renderer converts with Y(top) = PAGE_H - top.

Section order is fixed:
    header → client/equipment cards → diagnostics → services table
    → warranty banner → signatures

Only the warranty + signatures pair may move to a new page; everything else
stays on page 1 (long services tables are not paginated).
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from reportlab.lib.pagesizes import A4
from reportlab.lib.colors import Color, HexColor
from reportlab.pdfbase.pdfmetrics import stringWidth

from orcamento.forms.quote_utils import format_currency, format_phone, calculate_total

log = logging.getLogger("orcamento.layout")

Measure = Callable[[str, str, float], float]

# ═══════════════════════════════════════════════════════════════════════════════
# PAGE
# ═══════════════════════════════════════════════════════════════════════════════
PAGE_W, PAGE_H = A4          # 595.28 x 841.89
MARGIN        = 40           # left / right
TOP_MARGIN    = 40
BOTTOM_MARGIN = 40
SECTION_GAP   = 16
CONTENT_W     = PAGE_W - 2 * MARGIN
RIGHT_EDGE    = PAGE_W - MARGIN

NA_PLACEHOLDER = "N/A"

# ═══════════════════════════════════════════════════════════════════════════════
# STYLE TABLE: colours, fonts and paddings
# ═══════════════════════════════════════════════════════════════════════════════
BLUE       = HexColor("#1D4ED8")
DARK       = HexColor("#1F2937")
GRAY       = HexColor("#4B5563")
LIGHT_GRAY = HexColor("#F3F4F6")
RULE_GRAY  = HexColor("#D1D5DB")
RED        = HexColor("#F87171")
RED_BG     = HexColor("#FEF2F2")
YELLOW_BG  = HexColor("#FEF08A")
ROW_SHADE  = Color(0.96, 0.97, 0.99)
WHITE      = HexColor("#FFFFFF")

STYLE = {
    "header": {
        "height": 90,
        "logo_w": 110, "logo_h": 70,
        "title": "ORÇAMENTO",
        "title_font": "Helvetica-Bold", "title_size": 20, "title_baseline": 20,
        "label_font": "Helvetica", "value_font": "Helvetica-Bold", "size": 10,
        "first_line": 40, "line_h": 15,
        "color": DARK, "label_color": GRAY,
        "rule_color": RULE_GRAY, "rule_w": 1,
    },
    "section_title": {
        "height": 22, "baseline": 14,
        "font": "Helvetica-Bold", "size": 12, "color": DARK,
    },
    "card": {
        "base_height": 110,
        "title_offset": 34, "title_baseline": 20,
        "title_font": "Helvetica-Bold", "title_size": 12,
        "label_font": "Helvetica", "label_size": 9,
        "value_font": "Helvetica-Bold", "value_size": 10,
        "line_h": 14, "padding": 12,
        "bg": LIGHT_GRAY, "color": DARK, "label_color": GRAY, "accent": BLUE,
    },
    "diagnostics": {
        "title": "Diagnóstico / Problema",
        "line_h": 16, "padding": 16, "min_height": 40,
        "accent_w": 4, "inner_pad": 12,
        "marker": "•", "marker_gap": 6,
        "font": "Helvetica", "size": 10,
        "bg": RED_BG, "accent": RED, "color": DARK,
    },
    "services": {
        "title": "Procedimentos Realizados",
        "name_frac": 0.70,
        "header_h": 24, "row_min_h": 22, "row_line_h": 12, "row_pad": 10,
        "total_h": 26, "cell_pad": 8,
        "header_font": "Helvetica-Bold", "header_size": 10,
        "font": "Helvetica", "size": 10, "price_font": "Helvetica-Bold",
        "total_font": "Helvetica-Bold", "total_size": 12,
        "header_bg": BLUE, "header_color": WHITE,
        "shade": ROW_SHADE, "total_bg": LIGHT_GRAY, "total_color": BLUE,
        "rule_color": RULE_GRAY, "color": DARK,
        "labels": ("Serviço", "Valor"), "total_label": "TOTAL",
    },
    "warranty": {
        "height": 30,
        "font": "Helvetica-Bold", "size": 12,
        "bg": YELLOW_BG, "color": DARK,
    },
    "signatures": {
        "height": 72,
        "label_baseline": 10, "rule_offset": 44,
        "name_baseline": 58, "caption_baseline": 69,
        "label_font": "Helvetica", "label_size": 9,
        "name_font": "Helvetica-Bold", "name_size": 10,
        "caption_font": "Helvetica", "caption_size": 8,
        "rule_color": GRAY, "rule_w": 0.8,
        "color": DARK, "label_color": GRAY,
    },
    "footer": {
        "baseline_from_bottom": 20,
        "font": "Helvetica", "size": 8, "color": GRAY,
    },
}

WARRANTY_TEXT = "GARANTIA DE 30 DIAS DOS SERVIÇOS PRESTADOS"


# ═══════════════════════════════════════════════════════════════════════════════
# TEXT MEASUREMENT / WRAP
# ═══════════════════════════════════════════════════════════════════════════════

def measure_text(text: str, font: str, size: float) -> float:
    return stringWidth(text, font, size)


def wrap_text(text: str, width: float, font: str, size: float,
              measure: Measure = measure_text) -> List[str]:
    """Greedy word wrap by rendered width. Words are never broken.

    A string that already fits comes back as a single line, unchanged.
    Explicit newlines start new lines.
    """
    text = "" if text is None else str(text)
    if "\n" not in text and measure(text, font, size) <= width:
        return [text]

    lines = []
    for paragraph in text.split("\n"):
        words, cur = paragraph.split(), ""
        for w in words:
            candidate = f"{cur} {w}" if cur else w
            if cur and measure(candidate, font, size) > width:
                lines.append(cur)
                cur = w
            else:
                cur = candidate
        lines.append(cur)
    return lines or [""]


# ═══════════════════════════════════════════════════════════════════════════════
# GEOMETRY TYPES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class TextRun:
    text: str
    x: float
    font: str
    size: float


@dataclass
class TextLine:
    baseline: float          # top-origin y
    runs: List[TextRun]


@dataclass
class Section:
    name: str
    page: int                # 0-based
    top: float
    height: float

    @property
    def bottom(self) -> float:
        return self.top + self.height


@dataclass
class HeaderLayout(Section):
    logo_box: Tuple[float, float, float, float] = (0, 0, 0, 0)   # x, top, w, h
    lines: List[TextLine] = field(default_factory=list)


@dataclass
class CardField:
    label: str
    label_x: float
    value_x: float
    value_lines: List[str]
    first_baseline: float


@dataclass
class Card:
    title: str
    x: float
    width: float
    required_height: float
    fields: List[CardField] = field(default_factory=list)

    @property
    def line_count(self) -> int:
        return sum(len(f.value_lines) for f in self.fields)


@dataclass
class CardsLayout(Section):
    client: Optional[Card] = None
    equipment: Optional[Card] = None


@dataclass
class DiagnosticLine:
    text: str
    baseline: float
    marker: bool             # first line of a diagnostic carries the marker


@dataclass
class DiagnosticsLayout(Section):
    panel_top: float = 0
    panel_height: float = 0
    text_x: float = 0
    marker_x: float = 0
    lines: List[DiagnosticLine] = field(default_factory=list)


@dataclass
class TableRow:
    top: float
    height: float
    name_lines: List[str]
    price_text: str
    shaded: bool = False


@dataclass
class ServicesTableLayout(Section):
    table_top: float = 0
    name_w: float = 0
    price_w: float = 0
    header_row: Optional[TableRow] = None
    body_rows: List[TableRow] = field(default_factory=list)
    total_row: Optional[TableRow] = None


@dataclass
class WarrantyLayout(Section):
    text: str = WARRANTY_TEXT


@dataclass
class SignatureColumn:
    x: float
    width: float
    label: str
    name: str
    caption: str


@dataclass
class SignaturesLayout(Section):
    columns: List[SignatureColumn] = field(default_factory=list)


@dataclass
class DocumentLayout:
    sections: List[Section]
    page_count: int
    page_break_before_warranty: bool
    total: object

    def section(self, name: str) -> Section:
        for s in self.sections:
            if s.name == name:
                return s
        raise KeyError(name)


# ═══════════════════════════════════════════════════════════════════════════════
# SECTION GEOMETRY
# ═══════════════════════════════════════════════════════════════════════════════

def column_width() -> float:
    """Two equal columns with one margin-wide gap between them."""
    return (PAGE_W - 3 * MARGIN) / 2


def layout_header(record, top: float, measure: Measure = measure_text) -> HeaderLayout:
    st = STYLE["header"]
    title_w = measure(st["title"], st["title_font"], st["title_size"])
    lines = [TextLine(top + st["title_baseline"],
                      [TextRun(st["title"], RIGHT_EDGE - title_w, st["title_font"], st["title_size"])])]

    pairs = [
        ("Ordem de Serviço: ", record.service_order),
        ("Data: ",             record.date),
        ("WhatsApp: ",         format_phone(record.company_whatsapp)),
    ]
    for i, (label, value) in enumerate(pairs):
        value_x = RIGHT_EDGE - measure(value, st["value_font"], st["size"])
        label_x = value_x - measure(label, st["label_font"], st["size"])
        lines.append(TextLine(top + st["first_line"] + i * st["line_h"], [
            TextRun(label, label_x, st["label_font"], st["size"]),
            TextRun(value, value_x, st["value_font"], st["size"]),
        ]))

    return HeaderLayout("header", 0, top, st["height"],
                        logo_box=(MARGIN, top, st["logo_w"], st["logo_h"]),
                        lines=lines)


def _card(title, fields, x, top, width, measure: Measure) -> Card:
    st = STYLE["card"]
    pad = st["padding"]
    label_x = x + pad
    usable = width - 2 * pad

    out, line_idx = [], 0
    for label, value in fields:
        label_w = measure(label, st["label_font"], st["label_size"])
        value_lines = wrap_text(value, usable - label_w, st["value_font"], st["value_size"], measure)
        baseline = top + st["title_offset"] + (line_idx + 1) * st["line_h"] - 4
        out.append(CardField(label, label_x, label_x + label_w, value_lines, baseline))
        line_idx += len(value_lines)

    required = max(st["base_height"], st["title_offset"] + line_idx * st["line_h"] + pad)
    return Card(title, x, width, required, out)


def _or_na(value: str) -> str:
    return value if value and value.strip() else NA_PLACEHOLDER


def layout_cards(record, top: float, measure: Measure = measure_text) -> CardsLayout:
    col_w = column_width()
    client = _card("Dados do Cliente", [
        ("Cliente: ",  record.client_name),
        ("Telefone: ", format_phone(record.client_phone)),
    ], MARGIN, top, col_w, measure)
    equipment = _card("Dados do Equipamento", [
        ("Equipamento: ", record.equipment_type),
        ("Modelo: ",      record.equipment_model),
        ("Acessórios: ",  _or_na(record.equipment_accessories)),
        ("Senha: ",       _or_na(record.equipment_password)),
    ], 2 * MARGIN + col_w, top, col_w, measure)

    height = max(client.required_height, equipment.required_height)
    return CardsLayout("cards", 0, top, height, client=client, equipment=equipment)


def diagnostics_panel_height(line_count: int) -> float:
    st = STYLE["diagnostics"]
    return max(line_count * st["line_h"] + st["padding"], st["min_height"])


def layout_diagnostics(record, top: float, measure: Measure = measure_text) -> DiagnosticsLayout:
    st = STYLE["diagnostics"]
    title_h = STYLE["section_title"]["height"]
    panel_top = top + title_h

    marker_x = MARGIN + st["accent_w"] + st["inner_pad"]
    text_x = marker_x + measure(st["marker"], st["font"], st["size"]) + st["marker_gap"]
    text_w = RIGHT_EDGE - st["inner_pad"] - text_x

    lines = []
    for diag in record.diagnostics:
        for j, txt in enumerate(wrap_text(diag, text_w, st["font"], st["size"], measure)):
            baseline = panel_top + st["padding"] / 2 + (len(lines) + 1) * st["line_h"] - 4
            lines.append(DiagnosticLine(txt, baseline, marker=(j == 0)))

    panel_h = diagnostics_panel_height(len(lines))
    return DiagnosticsLayout("diagnostics", 0, top, title_h + panel_h,
                             panel_top=panel_top, panel_height=panel_h,
                             text_x=text_x, marker_x=marker_x, lines=lines)


def layout_services(record, top: float, measure: Measure = measure_text) -> ServicesTableLayout:
    st = STYLE["services"]
    title_h = STYLE["section_title"]["height"]
    name_w = CONTENT_W * st["name_frac"]
    price_w = CONTENT_W - name_w
    name_budget = name_w - 2 * st["cell_pad"]

    y = top + title_h
    table_top = y
    header = TableRow(y, st["header_h"], [st["labels"][0]], st["labels"][1])
    y += st["header_h"]

    rows = []
    for idx, svc in enumerate(record.services):
        name_lines = wrap_text(svc.name, name_budget, st["font"], st["size"], measure)
        row_h = max(st["row_min_h"], len(name_lines) * st["row_line_h"] + st["row_pad"])
        rows.append(TableRow(y, row_h, name_lines, format_currency(svc.price),
                             shaded=(idx % 2 == 0)))
        y += row_h

    total = TableRow(y, st["total_h"], [st["total_label"]],
                     format_currency(calculate_total(record.services)))
    y += st["total_h"]

    return ServicesTableLayout("services", 0, top, y - top,
                               table_top=table_top, name_w=name_w, price_w=price_w,
                               header_row=header, body_rows=rows, total_row=total)


def layout_signatures(record, page: int, top: float) -> SignaturesLayout:
    col_w = column_width()
    return SignaturesLayout("signatures", page, top, STYLE["signatures"]["height"], columns=[
        SignatureColumn(MARGIN, col_w, "Assinatura do Técnico:",
                        record.technician_name, "Técnico Responsável"),
        SignatureColumn(2 * MARGIN + col_w, col_w, "Assinatura do Cliente:",
                        record.client_name, "Cliente"),
    ])


# ═══════════════════════════════════════════════════════════════════════════════
# DOCUMENT
# ═══════════════════════════════════════════════════════════════════════════════

def trailing_block_height() -> float:
    """Vertical space warranty + gap + signatures need on one page."""
    return STYLE["warranty"]["height"] + SECTION_GAP + STYLE["signatures"]["height"]


def compute_layout(record, measure: Measure = measure_text,
                   warranty_text: str = WARRANTY_TEXT) -> DocumentLayout:
    """Lay out the whole document. Offsets accumulate top to bottom."""
    sections = []
    cursor = TOP_MARGIN

    for build in (layout_header, layout_cards, layout_diagnostics, layout_services):
        sec = build(record, cursor, measure)
        sections.append(sec)
        cursor = sec.bottom + SECTION_GAP

    services = sections[-1]
    if services.bottom > PAGE_H - BOTTOM_MARGIN:
        log.warning("Services table overruns page 1 by %.0fpt (%d services), not paginated",
                    services.bottom - (PAGE_H - BOTTOM_MARGIN), len(record.services))

    page = 0
    remaining = PAGE_H - cursor - BOTTOM_MARGIN
    page_break = remaining < trailing_block_height()
    if page_break:
        page += 1
        cursor = TOP_MARGIN
        log.debug("Warranty/signatures moved to page %d (%.0fpt left)", page + 1, remaining)

    warranty = WarrantyLayout("warranty", page, cursor, STYLE["warranty"]["height"],
                              text=warranty_text)
    sections.append(warranty)
    cursor = warranty.bottom + SECTION_GAP
    sections.append(layout_signatures(record, page, cursor))

    return DocumentLayout(sections=sections, page_count=page + 1,
                          page_break_before_warranty=page_break,
                          total=calculate_total(record.services))
