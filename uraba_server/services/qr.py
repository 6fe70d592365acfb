# Copyright (C) 2024 Uraba Logistics Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""QR codes for package labels."""

import io
import json

import qrcode
from qrcode.constants import ERROR_CORRECT_M

from uraba_server.config import settings
from uraba_server.models import Package


def build_qr_payload(package: Package, base_url: str | None = None) -> dict:
    """Data encoded into the label QR code."""
    base = (base_url or settings.tracking_base_url).rstrip("/")
    return {
        "tracking_code": package.tracking_code,
        "sender": package.sender_name,
        "recipient": package.recipient_name,
        "status": package.status,
        "tracking_url": f"{base}/tracking/{package.tracking_code}",
    }


def render_qr_png(payload: dict) -> bytes:
    """PNG image of the JSON-encoded payload."""
    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, box_size=10, border=4)
    qr.add_data(json.dumps(payload))
    qr.make(fit=True)
    buf = io.BytesIO()
    qr.make_image().save(buf)
    return buf.getvalue()
