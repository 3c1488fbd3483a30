import hashlib
import hmac


def sign_paystack_payload(payload: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), payload, hashlib.sha512).hexdigest()


def verify_paystack_signature(payload: bytes, signature: str, secret: str) -> bool:
    if not secret or not signature:
        return False
    computed = sign_paystack_payload(payload, secret)
    return hmac.compare_digest(computed, signature)
