import base64
import binascii
from typing import Optional

from constants import Settings
from errors import EncryptionParameterError, PayloadTooLargeError, ValidationError


def require_text(value: Optional[str], field_name: str, max_length: Optional[int] = None) -> str:
    """Return `value` stripped, raising ValidationError when it is missing or blank."""
    if value is None or not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} required")
    value = value.strip()
    if max_length is not None and len(value) > max_length:
        raise ValidationError(f"{field_name} must be at most {max_length} characters")
    return value


def require_secret(value: Optional[str], field_name: str = "Password") -> str:
    """Like require_text, but the value is kept exactly as given."""
    if value is None or not isinstance(value, str) or value == "":
        raise ValidationError(f"{field_name} required")
    return value


def decode_base64(value: str, field_name: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise EncryptionParameterError(f"Invalid base64 encoding in {field_name}") from exc


def validate_encryption_parameters(
    encrypted_payload: Optional[str],
    nonce: Optional[str],
    salt: Optional[str],
    settings: Settings,
) -> int:
    """Check the encoding-level shape of an encrypted message.

    Plaintext is never visible here. Returns the decoded ciphertext length.
    """
    if not encrypted_payload or not nonce:
        raise ValidationError("Missing required encryption parameters: encryptedPayload and nonce")

    max_size = settings.max_message_size_bytes
    # base64 inflates by 4/3; reject oversized input before decoding it
    if len(encrypted_payload) > (max_size + 2) // 3 * 4 + 4:
        raise PayloadTooLargeError(f"Message too large (max {max_size} bytes)")

    ciphertext = decode_base64(encrypted_payload, "encryptedPayload")
    nonce_bytes = decode_base64(nonce, "nonce")
    if salt:
        decode_base64(salt, "salt")

    if len(nonce_bytes) != settings.nonce_length_bytes:
        raise EncryptionParameterError(f"Invalid nonce size (must be {settings.nonce_length_bytes} bytes)")
    if not ciphertext:
        raise EncryptionParameterError("Encrypted message is empty")
    if len(ciphertext) < settings.min_ciphertext_bytes:
        raise EncryptionParameterError("Encrypted message too small")
    if len(ciphertext) > max_size:
        raise PayloadTooLargeError(f"Message too large (max {max_size} bytes)")
    return len(ciphertext)
