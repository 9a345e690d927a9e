"""Bodega WMS - Dispatch receipt (PDF) and dispatch email bodies (HTML)."""
import io
import logging
from datetime import datetime

from jinja2 import Environment, PackageLoader, select_autoescape
from PIL import Image, ImageDraw, ImageFont

from bodega.config import get_settings
from bodega.core.exceptions import RenderError
from bodega.db.base import utcnow
from bodega.schemas.workflow import CurrentDocument, LineStatus, VerificationItem

logger = logging.getLogger(__name__)

# green = exact, amber = short, red = nothing verified or over
PDF_STATUS_COLORS: dict[LineStatus, tuple[int, int, int]] = {
    LineStatus.EXACT: (25, 135, 84),
    LineStatus.SHORT: (255, 193, 7),
    LineStatus.MISSING: (220, 53, 69),
    LineStatus.SURPLUS: (220, 53, 69),
}

HTML_STATUS_COLORS: dict[LineStatus, str] = {
    LineStatus.EXACT: "#16a34a",
    LineStatus.SHORT: "#f59e0b",
    LineStatus.MISSING: "#dc2626",
    LineStatus.SURPLUS: "#dc2626",
}

_FONT_FILES = {
    False: ("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf", "arial.ttf"),
    True: ("/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf", "arialbd.ttf"),
}


def format_quantity(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


def format_difference(value: float, zero: str = "") -> str:
    if value == 0:
        return zero
    text = format_quantity(value)
    return f"+{text}" if value > 0 else text


def load_font(size: int, bold: bool = False) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """DejaVu, then Arial, then Pillow's bundled font."""
    for path in _FONT_FILES[bold]:
        try:
            return ImageFont.truetype(path, size)
        except OSError:
            continue
    return ImageFont.load_default(size=size)


def wrap_text(draw: ImageDraw.ImageDraw, text: str, font, max_width: int, max_lines: int | None = None) -> list[str]:
    """Greedy word wrap by rendered width; overflowing text ends in '...'."""
    lines: list[str] = []
    current = ""
    for word in text.split():
        candidate = f"{current} {word}".strip()
        if draw.textlength(candidate, font=font) <= max_width or not current:
            current = candidate
        else:
            lines.append(current)
            current = word
    if current:
        lines.append(current)

    if max_lines is not None and len(lines) > max_lines:
        lines = lines[:max_lines]
        last = lines[-1]
        while last and draw.textlength(f"{last}...", font=font) > max_width:
            last = last[:-1]
        lines[-1] = f"{last.rstrip()}..."
    return lines


def images_to_pdf(pages: list[Image.Image], dpi: int) -> bytes:
    if not pages:
        raise RenderError("No hay páginas para generar el PDF.")
    buf = io.BytesIO()
    first, *rest = [page.convert("RGB") for page in pages]
    first.save(buf, format="PDF", resolution=float(dpi), save_all=True, append_images=rest)
    return buf.getvalue()


# ── Receipt PDF ─────────────────────────────────────────────────────────────

RECEIPT_DPI = 100
RECEIPT_SIZE = (850, 1100)  # letter at 100 dpi
RECEIPT_MARGIN = 50
ROW_HEIGHT = 26


class ReceiptRenderer:
    """Comprobante de Despacho: header, meta block and a colour-coded line table."""

    def __init__(self, company_name: str | None = None):
        self.company_name = company_name or get_settings().COMPANY_NAME

    def _new_page(self, document: CurrentDocument, verified_by: str, printed_at: datetime, page_no: int):
        page = Image.new("RGB", RECEIPT_SIZE, color="white")
        draw = ImageDraw.Draw(page)
        width = RECEIPT_SIZE[0]
        x = RECEIPT_MARGIN
        y = RECEIPT_MARGIN

        draw.text((x, y), self.company_name, fill="black", font=load_font(22, bold=True))
        title_font = load_font(18, bold=True)
        title = "Comprobante de Despacho"
        draw.text((width - RECEIPT_MARGIN - draw.textlength(title, font=title_font), y), title, fill="black", font=title_font)
        y += 30
        doc_font = load_font(14)
        doc_line = f"N° {document.id}"
        draw.text((width - RECEIPT_MARGIN - draw.textlength(doc_line, font=doc_font), y), doc_line, fill="black", font=doc_font)
        y += 34

        meta_font = load_font(13)
        meta = [
            ("Tipo", document.type.value),
            ("Cliente", f"{document.client_name} ({document.client_id})"),
            ("Dirección", document.shipping_address or "N/A"),
            ("Verificado por", verified_by),
            ("Fecha", printed_at.strftime("%d/%m/%Y %H:%M")),
        ]
        if page_no > 1:
            meta = meta[3:]
        for label, value in meta:
            draw.text((x, y), f"{label}: {value}", fill="black", font=meta_font)
            y += 20
        y += 12

        header_font = load_font(13, bold=True)
        draw.rectangle([x, y, width - RECEIPT_MARGIN, y + ROW_HEIGHT], fill=(242, 242, 242))
        self._draw_row(draw, y, ("Código", "Descripción", "Req.", "Verif."), header_font, (0, 0, 0), header_font)
        return page, draw, y + ROW_HEIGHT

    def _draw_row(self, draw, y, cells, font, verified_color, verified_font):
        width = RECEIPT_SIZE[0]
        right = width - RECEIPT_MARGIN
        code, description, required, verified = cells
        text_y = y + 5
        draw.text((RECEIPT_MARGIN + 6, text_y), code, fill="black", font=font)
        desc = wrap_text(draw, description, font, 430, max_lines=1)
        draw.text((RECEIPT_MARGIN + 150, text_y), desc[0] if desc else "", fill="black", font=font)
        draw.text((right - 110 - draw.textlength(required, font=font), text_y), required, fill="black", font=font)
        draw.text((right - 6 - draw.textlength(verified, font=verified_font), text_y), verified, fill=verified_color, font=verified_font)

    def render(self, document: CurrentDocument, items: list[VerificationItem], verified_by: str) -> bytes:
        try:
            printed_at = utcnow()
            body_font = load_font(12)
            bold_font = load_font(12, bold=True)
            pages: list[Image.Image] = []
            page, draw, y = self._new_page(document, verified_by, printed_at, 1)
            for item in items:
                if y + ROW_HEIGHT > RECEIPT_SIZE[1] - RECEIPT_MARGIN:
                    pages.append(page)
                    page, draw, y = self._new_page(document, verified_by, printed_at, len(pages) + 1)
                status = item.status
                self._draw_row(
                    draw,
                    y,
                    (
                        item.item_code,
                        item.description,
                        format_quantity(item.required_quantity),
                        format_quantity(item.verified_quantity),
                    ),
                    body_font,
                    PDF_STATUS_COLORS[status],
                    body_font if status == LineStatus.EXACT else bold_font,
                )
                draw.line([RECEIPT_MARGIN, y + ROW_HEIGHT, RECEIPT_SIZE[0] - RECEIPT_MARGIN, y + ROW_HEIGHT], fill=(221, 221, 221))
                y += ROW_HEIGHT
            pages.append(page)
            return images_to_pdf(pages, RECEIPT_DPI)
        except OSError as exc:
            logger.exception("Receipt rendering failed for %s", document.id)
            raise RenderError("No se pudo generar el comprobante PDF.") from exc


# ── Email bodies ────────────────────────────────────────────────────────────

_env = Environment(
    loader=PackageLoader("bodega", "templates"),
    autoescape=select_autoescape(["html"]),
)
_env.filters["qty"] = format_quantity
_env.filters["diff"] = format_difference
_env.filters["status_color"] = lambda status: HTML_STATUS_COLORS[status]


def render_dispatch_email(
    document: CurrentDocument,
    items: list[VerificationItem],
    verified_by: str,
    body: str = "",
) -> tuple[str, str]:
    """Subject and HTML for the operator-sent dispatch summary."""
    html = _env.get_template("dispatch_email.html").render(
        document=document, items=items, verified_by=verified_by, body=body.strip()
    )
    return f"Comprobante de Despacho - {document.id}", html


def render_dispatch_completed(log: dict) -> tuple[str, str]:
    """Subject and HTML for the onDispatchCompleted notification; log is a DispatchLog payload."""
    items = [VerificationItem.model_validate(item) for item in log.get("items", [])]
    has_discrepancy = any(item.verified_quantity != item.required_quantity for item in items)
    verified_at = log.get("verified_at")
    if isinstance(verified_at, str):
        verified_at = datetime.fromisoformat(verified_at)
    html = _env.get_template("dispatch_completed.html").render(
        log=log,
        items=items,
        has_discrepancy=has_discrepancy,
        verified_at=verified_at.strftime("%d/%m/%Y %H:%M:%S") if verified_at else "",
        company_name=get_settings().COMPANY_NAME,
    )
    prefix = "Despacho con Discrepancias" if has_discrepancy else "Despacho Verificado"
    return f"{prefix} - {log.get('document_id')}", html


class DispatchMailer:
    """Sends the operator's dispatch summary through EmailService."""

    def __init__(self, email_service):
        self.email_service = email_service

    async def send_dispatch_email(
        self,
        to: list[str],
        cc: str,
        body: str,
        document: CurrentDocument,
        items: list[VerificationItem],
        verified_by: str,
    ) -> None:
        if not to:
            logger.warning("send_dispatch_email called without recipients for %s", document.id)
            return
        subject, html = render_dispatch_email(document, items, verified_by, body)
        await self.email_service.send_email(to=to, cc=cc, subject=subject, html=html)
        logger.info("Dispatch email sent for document %s", document.id)
