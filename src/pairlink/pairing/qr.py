"""QR code rendering of the pairing link.

The code carries the link text only, never key material beyond the
public key inside it.
"""

import base64
import html
import io
from pathlib import Path

import qrcode
from qrcode.main import QRCode

from pairlink.pairing.keys import pairing_link

_PAGE = """<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>pairlink</title>
    <style>
        body {{ margin: 0; min-height: 100vh; display: grid; place-items: center;
               background: #111; color: #ddd; font-family: system-ui, sans-serif; }}
        main {{ text-align: center; max-width: 32rem; }}
        img {{ background: #fff; padding: 12px; border-radius: 8px; }}
        code {{ display: block; margin-top: 1rem; color: #888; word-break: break-all; }}
    </style>
</head>
<body>
<main>
    <h1>Approve from your agent</h1>
    <img src="data:image/png;base64,{image}" alt="Pairing QR code">
    <code>{link}</code>
</main>
</body>
</html>
"""


class PairingQr:
    """QR code for one pairing attempt.

    Attributes:
        link: Pairing link encoded in the code.
        code: Laid-out qrcode.QRCode.
    """

    def __init__(self, public_key: bytes):
        self.link = pairing_link(public_key)
        self.code = self._layout(self.link)

    @staticmethod
    def _layout(data: str) -> QRCode:
        code = qrcode.QRCode(
            version=None,
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=8,
            border=4,
        )
        code.add_data(data)
        code.make(fit=True)
        return code

    def _png_bytes(self) -> bytes:
        buffer = io.BytesIO()
        self.code.make_image(fill_color="black", back_color="white").save(
            buffer, format="PNG"
        )
        return buffer.getvalue()

    def to_terminal(self) -> str:
        """Render as text for a terminal."""
        output = io.StringIO()
        self.code.print_ascii(out=output, invert=True)
        return output.getvalue()

    def to_png(self, path: str | Path) -> None:
        """Write the code as a PNG file."""
        Path(path).write_bytes(self._png_bytes())

    def to_html(self) -> str:
        """Render a standalone page with the image inlined and the link shown."""
        image = base64.b64encode(self._png_bytes()).decode("ascii")
        return _PAGE.format(image=image, link=html.escape(self.link))
