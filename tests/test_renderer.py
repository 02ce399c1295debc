"""Tests for PNG rendering of payloads."""

import base64
import io

from PIL import Image

from dynqris.renderer import compose_card, render_qr_payload


class TestRenderQrPayload:
    def test_png_output(self, static_payload: str) -> None:
        rendered = render_qr_payload(static_payload, title="qris")
        assert rendered.png_bytes.startswith(b"\x89PNG")
        assert base64.b64decode(rendered.png_base64) == rendered.png_bytes

    def test_image_dimensions(self, static_payload: str) -> None:
        image = Image.open(io.BytesIO(render_qr_payload(static_payload).png_bytes))
        assert image.format == "PNG"
        assert image.height > image.width

    def test_larger_box_size_grows_card(self, static_payload: str) -> None:
        small = compose_card(static_payload, "QRIS", box_size=4)
        large = compose_card(static_payload, "QRIS", box_size=8)
        assert large.width > small.width
