import io

import qrcode
from qrcode.constants import ERROR_CORRECT_H


def render_qr_png(data: str, *, box_size: int = 10, border: int = 2) -> bytes:
    """
    Encode `data` as a PNG QR code. Level H survives a smudged or torn print.
    """
    if not data:
        raise ValueError("QR payload is empty")

    qr = qrcode.QRCode(
        version=None,
        error_correction=ERROR_CORRECT_H,
        box_size=box_size,
        border=border,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()
