"""WhatsApp client factory and QR pairing output for groupwatch."""

from __future__ import annotations

import qrcode

import settings
from adapters.whatsapp_session import WhatsAppSession, open_session


def print_qr(code: str) -> None:
    """Render the pairing code as ASCII so it can be scanned from a terminal."""

    qr = qrcode.QRCode(border=1)
    qr.add_data(code)
    qr.make(fit=True)
    qr.print_ascii(invert=True)


async def build_session() -> WhatsAppSession:
    """Open a session backed by the configured neonize session database."""

    return await open_session(settings.SESSION_DB)
