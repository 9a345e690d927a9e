"""Bodega WMS - Inventory unit labels: 4x3 in landscape PDF with QR and Code128."""
import logging

import barcode
import qrcode
from barcode.errors import BarcodeError
from barcode.writer import ImageWriter
from PIL import Image, ImageDraw
from qrcode.constants import ERROR_CORRECT_H

from bodega.core.exceptions import RenderError
from bodega.db.base import utcnow
from bodega.services.document_renderer import images_to_pdf, load_font, wrap_text

logger = logging.getLogger(__name__)

LABEL_DPI = 200
LABEL_SIZE = (4 * LABEL_DPI, 3 * LABEL_DPI)
MARGIN = int(0.2 * LABEL_DPI)
LEFT_COL = int(1.2 * LABEL_DPI)


def render_qr(value: str, size: int) -> Image.Image:
    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_H, box_size=10, border=1)
    qr.add_data(value)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white").get_image().convert("RGB")
    return img.resize((size, size), Image.Resampling.NEAREST)


def render_code128(value: str, width: int, height: int) -> Image.Image:
    code128 = barcode.get_barcode_class("code128")
    img = code128(value, writer=ImageWriter()).render({
        "write_text": False,
        "module_height": 15.0,
        "quiet_zone": 1.0,
        "background": "white",
        "foreground": "black",
    })
    return img.convert("RGB").resize((width, height), Image.Resampling.NEAREST)


class LabelRenderer:
    """Draws one label per unit. Output is PDF bytes ready for a 4x3 thermal printer."""

    def render(
        self,
        unit_code: str,
        product_id: str,
        description: str,
        human_readable_id: str | None,
        document_id: str | None,
        location_path: str,
        created_by: str | None,
    ) -> bytes:
        try:
            page = Image.new("RGB", LABEL_SIZE, color="white")
            draw = ImageDraw.Draw(page)
            width, height = LABEL_SIZE

            # left column: QR, barcode, code text
            qr_img = render_qr(unit_code, LEFT_COL)
            page.paste(qr_img, (MARGIN, MARGIN))
            barcode_y = MARGIN + LEFT_COL + int(0.1 * LABEL_DPI)
            barcode_h = int(0.4 * LABEL_DPI)
            page.paste(render_code128(unit_code, LEFT_COL, barcode_h), (MARGIN, barcode_y))
            code_font = load_font(20)
            code_w = draw.textlength(unit_code, font=code_font)
            draw.text((MARGIN + (LEFT_COL - code_w) / 2, barcode_y + barcode_h + 8), unit_code, fill="black", font=code_font)

            # right column: product, lot, document, location
            x = MARGIN + LEFT_COL + int(0.2 * LABEL_DPI)
            col_width = width - x - MARGIN
            y = MARGIN + 10
            draw.text((x, y), f"Producto: {product_id}", fill="black", font=load_font(24, bold=True))
            y += 40

            small = load_font(18)
            for line in wrap_text(draw, description or "", small, col_width, max_lines=3):
                draw.text((x, y), line, fill="black", font=small)
                y += 26
            y += 24

            bold = load_font(20, bold=True)
            draw.text((x, y), f"Lote/ID: {human_readable_id or 'N/A'}", fill="black", font=bold)
            y += 30
            draw.text((x, y), f"Documento: {document_id or 'N/A'}", fill="black", font=bold)
            y += 46
            draw.text((x, y), "Ubicación:", fill="black", font=bold)
            y += 30
            for line in wrap_text(draw, location_path, small, col_width, max_lines=3):
                draw.text((x, y), line, fill="black", font=small)
                y += 26

            footer_font = load_font(16)
            footer = f"Creado: {utcnow().strftime('%d/%m/%Y')} por {created_by or 'Sistema'}"
            footer_w = draw.textlength(footer, font=footer_font)
            draw.text((width - MARGIN - footer_w, height - MARGIN - 16), footer, fill=(150, 150, 150), font=footer_font)

            return images_to_pdf([page], LABEL_DPI)
        except (OSError, ValueError, BarcodeError) as exc:
            logger.exception("Label rendering failed for unit %s", unit_code)
            raise RenderError("No se pudo generar la etiqueta.", unit_code=unit_code) from exc
