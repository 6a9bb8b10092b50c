"""
Signature Service for Reseller and Gateway Requests

Both upstream protocols authenticate requests with an MD5 hex digest over
a shared secret concatenated with request fields. The field order is fixed
by each provider.
"""
import hashlib
import hmac


def md5_hex(*parts: object) -> str:
    """MD5 hex digest of the concatenation of parts (as strings, UTF-8)."""
    message = "".join(str(part) for part in parts)
    return hashlib.md5(message.encode("utf-8")).hexdigest()


def sign_reseller_request(username: str, api_key: str, ref: str) -> str:
    """
    Reseller signature: md5(username + api_key + ref).

    ref is the literal "pricelist" for price-list calls and the caller's
    reference id for order and status calls.
    """
    return md5_hex(username, api_key, ref)


def sign_payment_request(api_key: str, unique_code: str, service: str, amount: int, valid_time: int) -> str:
    """Gateway signature for a new payment."""
    return md5_hex(api_key, unique_code, service, amount, valid_time, "NewTransaction")


def sign_payment_status_request(api_key: str, unique_code: str) -> str:
    """Gateway signature for a status check."""
    return md5_hex(api_key, unique_code, "StatusTransaction")


def verify_payment_callback(api_key: str, unique_code: str, signature: str) -> bool:
    """
    Verify a gateway callback signature using constant-time comparison.

    Expected value: md5(api_key + unique_code + "CallbackStatus").
    """
    expected = md5_hex(api_key, unique_code, "CallbackStatus")
    return hmac.compare_digest(expected, (signature or "").lower())
