"""
Quote PDF Generator
===================
Renders a validated QuoteRequest into a letter-size PDF held in memory.

Layout:
  - Title bar with QUOTE REQUEST # / DATE boxes
  - Requester block (name, company, email, phone)
  - Line-item table, dynamic row heights, header repeated on each page
  - Subtotal box and the customer's message
"""

import io
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from reportlab.lib.colors import Color, HexColor
from reportlab.lib.pagesizes import letter
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

from .quote_request import QuoteRequest

log = logging.getLogger("quotes.pdf")

# ═══════════════════════════════════════════════════════════════════════════════
# COLORS
# ═══════════════════════════════════════════════════════════════════════════════
FILL    = Color(0.765, 0.765, 0.882)   # #C3C3E0  lavender header fill
TBL_BD  = Color(0.278, 0.278, 0.553)   # #46468D  table grid borders
BLACK   = HexColor("#000000")
GRAY    = HexColor("#555555")
NAVY    = HexColor("#1a2744")
ALT_ROW = Color(0.96, 0.96, 0.98)

# Page geometry: 612x792, margins L=18 R=594
W, H = letter
ML   = 18
MR   = 594
UW   = MR - ML

# (header, x, width)
COLS = [
    ("#",           ML,       30),
    ("DESCRIPTION", ML + 30,  316),
    ("QTY",         ML + 346, 60),
    ("UNIT PRICE",  ML + 406, 85),
    ("TOTAL",       ML + 491, 85),
]
DESC_FONT_SIZE = 8.5
FOOTER_SPACE = 60


@dataclass(frozen=True)
class RenderedQuote:
    filename: str
    pdf_bytes: bytes
    reference: str


def quote_filename(now: Optional[float] = None) -> str:
    """quote-<unix millis>.pdf"""
    if now is None:
        now = time.time()
    return f"quote-{int(now * 1000)}.pdf"


def _fmt_qty(qty: float) -> str:
    return str(int(qty)) if float(qty).is_integer() else f"{qty:g}"


def render_quote(quote: QuoteRequest, now: Optional[float] = None,
                 seller: str = "Quotes") -> RenderedQuote:
    """Draw ``quote`` to PDF bytes. Filename is derived from ``now``."""
    if now is None:
        now = time.time()
    filename = quote_filename(now)
    reference = filename[len("quote-"):-len(".pdf")]
    quote_date = datetime.fromtimestamp(now).strftime("%b %d, %Y")

    log.info("Rendering quote %s for %s (%d items)",
             reference, quote.name[:40], len(quote.items),
             extra={"file": filename, "items": len(quote.items)})

    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    c.setTitle(f"Quote Request {reference}")
    c.setAuthor(seller)

    # top-origin y → reportlab y
    def Y(top_y):
        return H - top_y

    def text(x, yt, txt, font="Helvetica", size=9, color=BLACK, align="left"):
        c.setFont(font, size)
        c.setFillColor(color)
        s = str(txt) if txt else ""
        if align == "right":
            c.drawRightString(x, Y(yt), s)
        elif align == "center":
            c.drawCentredString(x, Y(yt), s)
        else:
            c.drawString(x, Y(yt), s)

    def box(x, yt, w, h, fill=False):
        rl_y = Y(yt) - h
        if fill:
            c.setFillColor(FILL)
            c.rect(x, rl_y, w, h, fill=1, stroke=0)
        c.setStrokeColor(TBL_BD)
        c.setLineWidth(0.5)
        c.rect(x, rl_y, w, h, fill=0, stroke=1)

    page_num = 1

    def footer():
        text(MR, Y(20), f"Page {page_num}", "Helvetica", 8, GRAY, "right")

    # ══════════════════════════════════════════════════════════════════════════
    # HEADER
    # ══════════════════════════════════════════════════════════════════════════
    text(ML + 8, 60, seller, "Helvetica-Bold", 14, NAVY)
    text(MR, 60, "QUOTE REQUEST", "Helvetica-Bold", 22, BLACK, "right")
    c.setStrokeColor(TBL_BD)
    c.setLineWidth(1.5)
    c.line(ML, Y(70), MR, Y(70))

    box(396, 80, 67, 22, fill=True)
    text(400, 97, "REF #", "Helvetica-Bold", 10)
    box(463, 80, 131, 22)
    text(MR - 6, 97, reference, "Helvetica-Bold", 10, BLACK, "right")

    box(396, 103, 67, 22, fill=True)
    text(400, 120, "DATE", "Helvetica-Bold", 10)
    box(463, 103, 131, 22)
    text(MR - 6, 120, quote_date, "Helvetica-Bold", 10, BLACK, "right")

    # ── Requester ─────────────────────────────────────────────────────────────
    text(ML + 8, 95, "Requested by:", "Helvetica-Bold", 10)
    ry = 109
    for line in (quote.name, quote.company, quote.email or "", quote.phone):
        if line:
            text(ML + 8, ry, line, "Helvetica", 10)
            ry += 13

    # ══════════════════════════════════════════════════════════════════════════
    # LINE ITEMS TABLE
    # ══════════════════════════════════════════════════════════════════════════
    hdr_h = 22

    def draw_table_header(ty):
        for name, cx, cw in COLS:
            rl_y = Y(ty) - hdr_h
            c.setFillColor(FILL)
            c.rect(cx, rl_y, cw, hdr_h, fill=1, stroke=0)
            c.setStrokeColor(TBL_BD)
            c.setLineWidth(0.5)
            c.rect(cx, rl_y, cw, hdr_h, fill=0, stroke=1)
            c.setFillColor(BLACK)
            c.setFont("Helvetica-Bold", 10)
            c.drawString(cx + 4, rl_y + 7, name)
        return ty + hdr_h

    cur_y = draw_table_header(max(ry, 135) + 12)

    for idx, item in enumerate(quote.items):
        desc_lines = simpleSplit(item.description, "Helvetica", DESC_FONT_SIZE,
                                 COLS[1][2] - 8) or [""]
        row_h = max(20, len(desc_lines) * 10 + 8)

        if Y(cur_y) - row_h < FOOTER_SPACE:
            footer()
            c.showPage()
            page_num += 1
            cur_y = draw_table_header(40)

        rl_row_y = Y(cur_y) - row_h
        if idx % 2 == 1:
            c.setFillColor(ALT_ROW)
            c.rect(ML, rl_row_y, UW, row_h, fill=1, stroke=0)

        c.setStrokeColor(TBL_BD)
        c.setLineWidth(0.3)
        for _, cx, cw in COLS:
            c.rect(cx, rl_row_y, cw, row_h, fill=0, stroke=1)

        c.setFillColor(BLACK)
        baseline = rl_row_y + row_h - 12
        c.setFont("Helvetica", 9)
        c.drawString(COLS[0][1] + 6, baseline, str(idx + 1))

        c.setFont("Helvetica", DESC_FONT_SIZE)
        dy = baseline
        for dline in desc_lines:
            c.drawString(COLS[1][1] + 4, dy, dline)
            dy -= 10

        c.setFont("Helvetica", 9)
        for col, val in ((2, _fmt_qty(item.quantity)),
                         (3, f"${item.unit_price:,.2f}"),
                         (4, f"${item.line_total:,.2f}")):
            cx, cw = COLS[col][1], COLS[col][2]
            c.drawRightString(cx + cw - 6, baseline, val)

        cur_y += row_h

    # ══════════════════════════════════════════════════════════════════════════
    # TOTAL + MESSAGE
    # ══════════════════════════════════════════════════════════════════════════
    tot_h = 20
    if Y(cur_y + 4) - tot_h < FOOTER_SPACE:
        footer()
        c.showPage()
        page_num += 1
        cur_y = 40
    lbl_x, lbl_w = COLS[3][1], COLS[3][2]
    val_x, val_w = COLS[4][1], COLS[4][2]
    box(lbl_x, cur_y + 4, lbl_w, tot_h, fill=True)
    box(val_x, cur_y + 4, val_w, tot_h)
    text(lbl_x + lbl_w - 6, cur_y + 18, "SUBTOTAL", "Helvetica-Bold", 10, BLACK, "right")
    text(val_x + val_w - 6, cur_y + 18, f"${quote.subtotal:,.2f}", "Helvetica-Bold", 10, BLACK, "right")
    cur_y += tot_h + 24

    if quote.message:
        msg_lines = []
        for para in quote.message.splitlines() or [""]:
            msg_lines.extend(simpleSplit(para, "Helvetica", 9, UW - 16) or [""])
        text(ML + 8, cur_y, "Message:", "Helvetica-Bold", 10)
        cur_y += 14
        for line in msg_lines:
            if Y(cur_y) < FOOTER_SPACE:
                footer()
                c.showPage()
                page_num += 1
                cur_y = 40
            text(ML + 8, cur_y, line, "Helvetica", 9)
            cur_y += 11

    footer()
    c.save()
    return RenderedQuote(filename=filename, pdf_bytes=buf.getvalue(), reference=reference)
