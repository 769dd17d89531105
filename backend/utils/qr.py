import base64
import io
import secrets
import string
import time

import qrcode

_BASE36 = string.digits + string.ascii_lowercase

def generate_bin_code() -> str:
    """Printable identifier encoded in a bin's QR sticker, e.g. BIN-1730265600000-k3j9x0a2b."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"BIN-{int(time.time() * 1000)}-{suffix}"

def qr_data_url(data: str) -> str:
    """Render data as a PNG QR code and return it as a data URL."""
    buffer = io.BytesIO()
    qrcode.make(data).save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")
