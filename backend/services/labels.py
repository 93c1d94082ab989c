import base64
from io import BytesIO

import qrcode


def generate_qr_base64(data: str) -> str:
    """Render ``data`` as a QR code and return the PNG as base64."""
    qr = qrcode.QRCode(version=1, box_size=10, border=4)
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffer = BytesIO()
    img.save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode()
