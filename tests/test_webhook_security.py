"""Tests for gateway notification signatures."""

from clinic_app.webhook_security import (
    build_signature_manifest,
    compute_hmac_sha256,
    parse_signature_header,
    verify_mercadopago_signature,
)

SECRET = "webhook-secret"


def sign(data_id, request_id, ts):
    return compute_hmac_sha256(SECRET, build_signature_manifest(data_id, request_id, ts).encode())


def test_parse_signature_header():
    assert parse_signature_header("ts=1704908010,v1=abc") == ("1704908010", "abc")
    assert parse_signature_header(" v1=abc , ts=1 ") == ("1", "abc")
    assert parse_signature_header("garbage") == (None, None)


def test_manifest_lowercases_ids():
    assert build_signature_manifest("ABC1", "req-1", "10") == "id:abc1;request-id:req-1;ts:10;"


def test_valid_signature():
    header = f"ts=1704908010,v1={sign('123', 'req-1', '1704908010')}"

    assert verify_mercadopago_signature(SECRET, header, "req-1", "123") is True


def test_tampered_notification_is_rejected():
    header = f"ts=1704908010,v1={sign('123', 'req-1', '1704908010')}"

    assert verify_mercadopago_signature(SECRET, header, "req-1", "124") is False
    assert verify_mercadopago_signature(SECRET, header, "req-2", "123") is False
    assert verify_mercadopago_signature(SECRET, "", "req-1", "123") is False
    assert verify_mercadopago_signature(SECRET, "ts=1", "req-1", "123") is False
    assert verify_mercadopago_signature(SECRET, header, "req-1", None) is False


def test_verification_skipped_without_secret():
    assert verify_mercadopago_signature(None, "", "", None) is True
