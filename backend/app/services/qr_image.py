"""QR symbol rendering as data URLs."""

import base64
import io
from urllib.parse import quote

import qrcode
import qrcode.image.svg
from qrcode.constants import ERROR_CORRECT_L, ERROR_CORRECT_M, ERROR_CORRECT_Q, ERROR_CORRECT_H

ERROR_CORRECTION = {
    "L": ERROR_CORRECT_L,
    "M": ERROR_CORRECT_M,
    "Q": ERROR_CORRECT_Q,
    "H": ERROR_CORRECT_H,
}

FORMATS = ("PNG", "SVG")


def _build(text: str, ecc: str) -> qrcode.QRCode:
    qr = qrcode.QRCode(error_correction=ERROR_CORRECTION.get(ecc.upper(), ERROR_CORRECT_M))
    qr.add_data(text)
    qr.make(fit=True)
    return qr


def png_data_url(text: str, ecc: str = "M") -> str:
    img = _build(text, ecc).make_image()
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    b64 = base64.b64encode(buf.getvalue()).decode("utf-8")
    return f"data:image/png;base64,{b64}"


def svg_data_url(text: str, ecc: str = "M") -> str:
    img = _build(text, ecc).make_image(image_factory=qrcode.image.svg.SvgImage)
    buf = io.BytesIO()
    img.save(buf)
    return f"data:image/svg+xml;utf8,{quote(buf.getvalue().decode('utf-8'))}"


def render_data_url(text: str, fmt: str = "PNG", ecc: str = "M") -> str:
    if fmt.upper() == "SVG":
        return svg_data_url(text, ecc)
    return png_data_url(text, ecc)
