"""Webhook signature verification.

Every scheme reduces to the same three steps: build the provider's
canonical string, hash it, compare in constant time. The ``verify_*``
functions return booleans and never raise; ``verify_or_fail`` is the
exception-based variant.
"""

import base64
import binascii
import hashlib
import hmac
import json
import logging
import time
from collections.abc import Mapping, Sequence
from typing import Any
from urllib.parse import urlencode

from paykit.core.exceptions import InvalidSignatureError

logger = logging.getLogger(__name__)

DEFAULT_ALGORITHMS = ("sha256", "sha512", "md5")

# Stripe rejects events signed more than five minutes ago
STRIPE_TOLERANCE_SECONDS = 300


def _to_bytes(value: str | bytes) -> bytes:
    if isinstance(value, bytes):
        return value
    return value.encode("utf-8")


def _hmac_digest(payload: str | bytes, secret: str | bytes, algorithm: str) -> bytes | None:
    try:
        return hmac.new(_to_bytes(secret), _to_bytes(payload), algorithm).digest()
    except (ValueError, TypeError):
        logger.warning(f"Unsupported HMAC algorithm: {algorithm}")
        return None


def _matches(expected: str, candidate: str | bytes) -> bool:
    if isinstance(candidate, bytes):
        try:
            candidate = candidate.decode("ascii")
        except UnicodeDecodeError:
            return False
    candidate = candidate.strip()
    # compare_digest only accepts ASCII str
    if not candidate.isascii():
        return False
    return hmac.compare_digest(expected, candidate)


def generate_signature(payload: str | bytes, secret: str | bytes, algorithm: str = "sha256") -> str:
    """Hex HMAC of ``payload`` keyed with ``secret``."""
    digest = _hmac_digest(payload, secret, algorithm)
    if digest is None:
        raise ValueError(f"Unsupported HMAC algorithm: {algorithm}")
    return digest.hex()


def verify_hmac(
    payload: str | bytes,
    signature: str | None,
    secret: str | bytes | None,
    algorithm: str = "sha256",
) -> bool:
    """Check ``signature`` against ``HMAC(algorithm, payload, secret)``.

    The signature may be the hex digest, the base64 encoding of the raw
    digest, or the base64 encoding of the hex digest.
    """
    if not signature or not secret:
        return False

    digest = _hmac_digest(payload, secret, algorithm)
    if digest is None:
        return False

    expected_hex = digest.hex()
    if _matches(expected_hex, signature):
        return True

    try:
        decoded = base64.b64decode(signature.strip(), validate=True)
    except (binascii.Error, ValueError):
        return False

    if hmac.compare_digest(digest, decoded):
        return True
    return _matches(expected_hex, decoded)


def verify_sha256(payload: str | bytes, signature: str | None, secret: str | bytes | None) -> bool:
    return verify_hmac(payload, signature, secret, "sha256")


def verify_sha512(payload: str | bytes, signature: str | None, secret: str | bytes | None) -> bool:
    return verify_hmac(payload, signature, secret, "sha512")


def verify_md5(payload: str | bytes, signature: str | None, secret: str | bytes | None) -> bool:
    return verify_hmac(payload, signature, secret, "md5")


def verify_webhook(
    payload: str | bytes,
    signature: str | None,
    secret: str | bytes | None,
    algorithms: Sequence[str] = DEFAULT_ALGORITHMS,
) -> bool:
    """Try each algorithm in order; True on the first match."""
    return any(verify_hmac(payload, signature, secret, algorithm) for algorithm in algorithms)


def verify_or_fail(
    payload: str | bytes,
    signature: str | None,
    secret: str | bytes | None,
    algorithm: str = "sha256",
    gateway: str | None = None,
) -> None:
    """Raise InvalidSignatureError unless the HMAC matches."""
    if not verify_hmac(payload, signature, secret, algorithm):
        if gateway:
            raise InvalidSignatureError.for_gateway(gateway)
        raise InvalidSignatureError("Invalid signature")


def canonical_payload(payload: Mapping[str, Any]) -> str:
    """Compact, key-sorted JSON of ``payload`` without its ``signature`` field."""
    fields = {k: v for k, v in payload.items() if k != "signature"}
    return json.dumps(fields, sort_keys=True, separators=(",", ":"), default=str)


def sign_payload(payload: Mapping[str, Any], secret: str | bytes, algorithm: str = "sha256") -> str:
    """Signature carried inside a notification as its ``signature`` field."""
    return generate_signature(canonical_payload(payload), secret, algorithm)


def verify_payload(
    payload: Mapping[str, Any], secret: str | bytes | None, algorithm: str = "sha256"
) -> bool:
    """Check the ``signature`` field of ``payload``; False when it is missing."""
    candidate = payload.get("signature")
    if not isinstance(candidate, str):
        return False
    return verify_hmac(canonical_payload(payload), candidate, secret, algorithm)


def extract_signature_from_header(header: str, prefix: str = "sha256=") -> str:
    """Strip a scheme prefix such as ``sha256=`` from a signature header."""
    if header.startswith(prefix):
        return header[len(prefix):]
    return header


# ---------------------------------------------------------------------------
# Provider compositions
# ---------------------------------------------------------------------------


def razorpay_payload(order_id: str, payment_id: str) -> str:
    return f"{order_id}|{payment_id}"


def verify_razorpay(order_id: str, payment_id: str, signature: str | None, secret: str | None) -> bool:
    """Razorpay checkout: HMAC-SHA256 of ``order_id|payment_id``."""
    return verify_sha256(razorpay_payload(order_id, payment_id), signature, secret)


def parse_stripe_header(header: str) -> dict[str, list[str]]:
    """Split ``t=...,v1=...,v0=...`` into its elements."""
    elements: dict[str, list[str]] = {}
    for element in header.split(","):
        key, sep, value = element.strip().partition("=")
        if not sep:
            continue
        elements.setdefault(key, []).append(value)
    return elements


def verify_stripe(
    payload: str | bytes,
    signature_header: str | None,
    secret: str | None,
    tolerance: int | None = STRIPE_TOLERANCE_SECONDS,
    now: float | None = None,
) -> bool:
    """Stripe-Signature: HMAC-SHA256 of ``{t}.{payload}``, compared to each ``v1``.

    Other schemes in the header (``v0``) are ignored. When ``tolerance`` is
    set, timestamps older than that many seconds are rejected.
    """
    if not signature_header or not secret:
        return False

    elements = parse_stripe_header(signature_header)
    timestamps = elements.get("t")
    candidates = elements.get("v1")
    if not timestamps or not candidates:
        return False

    timestamp = timestamps[0]
    if tolerance is not None:
        try:
            age = (now if now is not None else time.time()) - int(timestamp)
        except ValueError:
            return False
        if age > tolerance:
            return False

    signed_payload = _to_bytes(timestamp) + b"." + _to_bytes(payload)
    expected = generate_signature(signed_payload, secret, "sha256")
    return any(_matches(expected, candidate) for candidate in candidates)


def verify_paystack(payload: str | bytes, signature: str | None, secret: str | None) -> bool:
    """x-paystack-signature: HMAC-SHA512 of the raw body."""
    return verify_sha512(payload, signature, secret)


def verify_flutterwave(payload: str | bytes, signature: str | None, secret: str | None) -> bool:
    return verify_sha256(payload, signature, secret)


def phonepe_checksum(payload: str, endpoint: str, salt_key: str, salt_index: str | int) -> str:
    digest = hashlib.sha256(f"{payload}{endpoint}{salt_key}".encode("utf-8")).hexdigest()
    return f"{digest}###{salt_index}"


def verify_phonepe(
    payload: str,
    signature: str | None,
    salt_key: str | None,
    salt_index: str | int,
    endpoint: str = "",
) -> bool:
    """X-VERIFY: ``sha256(payload + endpoint + salt_key) + '###' + salt_index``.

    ``payload`` is the base64 response body PhonePe sends. Callbacks carry
    no endpoint path; status checks pass ``/pg/v1/status/{merchant}/{txn}``.
    """
    if not signature or not salt_key:
        return False
    expected = phonepe_checksum(payload, endpoint, salt_key, salt_index)
    return _matches(expected, signature)


def skrill_md5sig(fields: Mapping[str, str], secret_word: str) -> str:
    """Skrill status_url ``md5sig``.

    ``MD5(merchant_id + transaction_id + UPPER(MD5(secret_word)) + mb_amount
    + mb_currency + status)``, upper-cased.
    """
    secret_hash = hashlib.md5(secret_word.encode("utf-8")).hexdigest().upper()
    canonical = "".join(
        [
            str(fields.get("merchant_id", "")),
            str(fields.get("transaction_id", "")),
            secret_hash,
            str(fields.get("mb_amount", "")),
            str(fields.get("mb_currency", "")),
            str(fields.get("status", "")),
        ]
    )
    return hashlib.md5(canonical.encode("utf-8")).hexdigest().upper()


def verify_skrill(fields: Mapping[str, str], secret_word: str | None) -> bool:
    signature = fields.get("md5sig")
    if not signature or not secret_word:
        return False
    return _matches(skrill_md5sig(fields, secret_word), str(signature).upper())


def payfast_signature(data: Mapping[str, str], passphrase: str | None = None) -> str:
    """PayFast: MD5 of the sorted, url-encoded field string plus passphrase."""
    fields = sorted((k, v) for k, v in data.items() if k != "signature" and v is not None)
    param_string = urlencode(fields)
    if passphrase:
        param_string += f"&{urlencode({'passphrase': passphrase})}"
    return hashlib.md5(param_string.encode("utf-8")).hexdigest()


def verify_payfast(data: Mapping[str, str], passphrase: str | None = None) -> bool:
    signature = data.get("signature")
    if not signature:
        return False
    return _matches(payfast_signature(data, passphrase), str(signature))
