"""PNG rendering of dynamic payloads for display at the cashier."""
from __future__ import annotations

import base64
import io
from dataclasses import dataclass

import qrcode
from PIL import Image, ImageDraw, ImageFont

CAPTION_HEIGHT = 36
FRAME_MARGIN = 24


@dataclass(frozen=True)
class RenderedQR:
    png_bytes: bytes

    @property
    def png_base64(self) -> str:
        return base64.b64encode(self.png_bytes).decode("ascii")


def _qr_matrix_image(data: str, box_size: int) -> Image.Image:
    qr = qrcode.QRCode(version=None, error_correction=qrcode.constants.ERROR_CORRECT_M, box_size=box_size, border=2)
    qr.add_data(data)
    qr.make(fit=True)
    return qr.make_image(fill_color="black", back_color="white").convert("RGB")


def compose_card(data: str, caption: str, *, box_size: int = 8) -> Image.Image:
    """Place the QR code on a white card with a caption strip underneath."""

    code = _qr_matrix_image(data, box_size)
    size = code.size[0]
    card = Image.new("RGB", (size + FRAME_MARGIN * 2, size + FRAME_MARGIN * 2 + CAPTION_HEIGHT), color="#FFFFFF")
    card.paste(code, (FRAME_MARGIN, FRAME_MARGIN))

    draw = ImageDraw.Draw(card)
    font = ImageFont.load_default()
    text = caption.upper()
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    strip_top = FRAME_MARGIN + size
    draw.line([(FRAME_MARGIN, strip_top), (card.width - FRAME_MARGIN, strip_top)], fill="#D1D5DB", width=1)
    draw.text(
        ((card.width - (right - left)) // 2, strip_top + (CAPTION_HEIGHT - (bottom - top)) // 2),
        text,
        fill="#111827",
        font=font,
    )
    return card


def render_qr_payload(payload: str, *, title: str = "QRIS", box_size: int = 8) -> RenderedQR:
    """Render a payload to PNG."""

    buffer = io.BytesIO()
    compose_card(payload, title, box_size=box_size).save(buffer, format="PNG")
    return RenderedQR(png_bytes=buffer.getvalue())
