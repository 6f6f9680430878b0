"""Signature material per checkout flow and the constant-time verifier."""

import hashlib
import hmac

import pytest

from app.core.security import (
    create_access_token,
    load_access_token,
    order_signature_material,
    sign,
    subscription_signature_material,
    verify_razorpay_webhook,
    verify_signature,
)

SECRET = "test_key_secret"


def _hmac(secret: str, message: str) -> str:
    return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()


def test_order_material_is_order_then_payment():
    assert order_signature_material("order_abc", "pay_1") == "order_abc|pay_1"


def test_subscription_material_is_payment_then_subscription():
    assert subscription_signature_material("pay_1", "sub_xyz") == "pay_1|sub_xyz"


@pytest.mark.parametrize(
    "order_id,payment_id",
    [("order_abc", "pay_1"), ("order_KxLq2", "pay_29QQoUBi66xm2f"), ("o", "p")],
)
def test_verify_accepts_provider_signature_for_orders(order_id, payment_id):
    material = order_signature_material(order_id, payment_id)
    assert verify_signature(material, _hmac(SECRET, f"{order_id}|{payment_id}"), SECRET)


def test_verify_accepts_provider_signature_for_subscriptions():
    material = subscription_signature_material("pay_1", "sub_xyz")
    assert verify_signature(material, _hmac(SECRET, "pay_1|sub_xyz"), SECRET)


def test_sign_matches_hmac_sha256_hex():
    assert sign("order_abc|pay_1", SECRET) == _hmac(SECRET, "order_abc|pay_1")


def test_swapped_field_order_fails():
    signature = _hmac(SECRET, "pay_1|order_abc")
    assert not verify_signature(order_signature_material("order_abc", "pay_1"), signature, SECRET)


def test_wrong_delimiter_fails():
    signature = _hmac(SECRET, "order_abc:pay_1")
    assert not verify_signature(order_signature_material("order_abc", "pay_1"), signature, SECRET)


def test_wrong_secret_fails():
    material = order_signature_material("order_abc", "pay_1")
    assert not verify_signature(material, _hmac("other_secret", material), SECRET)


def test_tampered_signature_fails():
    material = order_signature_material("order_abc", "pay_1")
    good = _hmac(SECRET, material)
    bad = ("0" if good[0] != "0" else "1") + good[1:]
    assert not verify_signature(material, bad, SECRET)


@pytest.mark.parametrize("signature", ["", "not-hex", "é" * 64, "deadbeef"])
def test_garbage_signatures_return_false(signature):
    assert verify_signature("order_abc|pay_1", signature, SECRET) is False


def test_missing_secret_returns_false():
    material = "order_abc|pay_1"
    assert verify_signature(material, _hmac(SECRET, material), "") is False


def test_webhook_signature_over_raw_body():
    body = b'{"event":"payment.captured"}'
    signature = hmac.new(b"whsec", body, hashlib.sha256).hexdigest()
    assert verify_razorpay_webhook(body, signature, "whsec")
    assert not verify_razorpay_webhook(body + b" ", signature, "whsec")


def test_access_token_roundtrip_and_tamper():
    token = create_access_token({"user_id": "abc", "role": "user"})
    assert load_access_token(token) == {"user_id": "abc", "role": "user"}
    assert load_access_token(token + "x") is None
