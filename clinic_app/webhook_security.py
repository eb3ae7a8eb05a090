"""
Webhook Security Module

Signature verification for payment gateway notifications.
- Constant-time signature comparison
- Manifest built from the notification id, request id and timestamp
"""

import hashlib
import hmac
import logging
from typing import Optional

logger = logging.getLogger(__name__)


def constant_time_compare(a: str, b: str) -> bool:
    """
    Compare two strings in constant time to prevent timing attacks.
    Uses hmac.compare_digest which is designed for this purpose.
    """
    if not a or not b:
        return False
    return hmac.compare_digest(a, b)


def compute_hmac_sha256(secret: str, payload: bytes) -> str:
    """Compute HMAC-SHA256 signature of payload"""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def parse_signature_header(signature_header: str) -> tuple[Optional[str], Optional[str]]:
    """
    Split an ``x-signature`` header of the form ``ts=1704908010,v1=abc123``.

    Returns:
        Tuple of (timestamp, signature); missing parts are None
    """
    timestamp = None
    signature = None
    for part in (signature_header or "").split(","):
        key, _, value = part.strip().partition("=")
        if key == "ts":
            timestamp = value.strip()
        elif key == "v1":
            signature = value.strip()
    return timestamp, signature


def build_signature_manifest(data_id: str, request_id: str, timestamp: str) -> str:
    """Signed template: id:{data.id};request-id:{x-request-id};ts:{ts};"""
    # Alphanumeric ids are signed in lowercase
    return f"id:{str(data_id).lower()};request-id:{request_id};ts:{timestamp};"


def verify_mercadopago_signature(
    secret: Optional[str],
    signature_header: str,
    request_id: str,
    data_id: Optional[str],
) -> bool:
    """
    Verify a MercadoPago notification signature.

    Args:
        secret: Webhook secret from the MercadoPago dashboard
        signature_header: Raw ``x-signature`` header
        request_id: Raw ``x-request-id`` header
        data_id: ``data.id`` of the notification

    Returns:
        True if the signature matches (or no secret is configured)
    """
    if not secret:
        logger.warning("⚠️ MERCADOPAGO_WEBHOOK_SECRET not configured, skipping verification")
        return True  # Allow in development

    if not signature_header:
        logger.error("❌ Missing x-signature header")
        return False

    timestamp, received_signature = parse_signature_header(signature_header)
    if not timestamp or not received_signature:
        logger.error(f"❌ Invalid signature format: {signature_header[:30]}...")
        return False

    if data_id is None:
        logger.error("❌ Notification without data.id cannot be verified")
        return False

    manifest = build_signature_manifest(data_id, request_id or "", timestamp)
    expected_signature = compute_hmac_sha256(secret, manifest.encode("utf-8"))

    if constant_time_compare(expected_signature, received_signature):
        logger.info(f"✅ Webhook signature verified for notification {data_id}")
        return True

    logger.warning(
        f"⚠️ Signature mismatch - Expected: {expected_signature[:20]}..., Got: {received_signature[:20]}..."
    )
    return False
