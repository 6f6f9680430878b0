"""Session tokens and Razorpay signature checks."""

import hashlib
import hmac
from typing import Any

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from app.core.config import get_settings


def get_session_serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(
        settings.secret_key,
        salt="coursepay-session",
        signer_kwargs={"key_derivation": "hmac", "digest_method": hashlib.sha256},
    )


def create_access_token(payload: dict[str, Any]) -> str:
    """Sign a session payload ({user_id, role}) for use as a bearer token."""
    return get_session_serializer().dumps(payload)


def load_access_token(token: str, max_age_seconds: int | None = None) -> dict[str, Any] | None:
    serializer = get_session_serializer()
    max_age = max_age_seconds or get_settings().session_max_age_seconds
    try:
        return serializer.loads(token, max_age=max_age)
    except (BadSignature, SignatureExpired):
        return None


def order_signature_material(order_id: str, payment_id: str) -> str:
    """Razorpay signs one-off checkout payments as "<order_id>|<payment_id>"."""
    return f"{order_id}|{payment_id}"


def subscription_signature_material(payment_id: str, subscription_id: str) -> str:
    """Subscription checkout signs "<payment_id>|<subscription_id>" (note the reversed order)."""
    return f"{payment_id}|{subscription_id}"


def sign(material: str, secret: str) -> str:
    return hmac.new(
        secret.encode("utf-8"),
        material.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def verify_signature(material: str, signature: str, secret: str) -> bool:
    """Constant-time check of a hex HMAC-SHA256 signature. Never raises."""
    if not material or not signature or not secret:
        return False
    if not isinstance(signature, str) or not signature.isascii():
        return False
    expected = sign(material, secret)
    return hmac.compare_digest(expected, signature)


def verify_razorpay_webhook(payload: bytes, signature: str, secret: str) -> bool:
    if not payload or not signature or not secret or not signature.isascii():
        return False
    expected = hmac.new(
        secret.encode("utf-8"),
        payload,
        hashlib.sha256,
    ).hexdigest()
    return hmac.compare_digest(expected, signature)
