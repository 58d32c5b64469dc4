"""
Payload protection for ispacbuild.

This package implements the protection-level-driven encryption scheme shared
by every project file:

- levels: the ProtectionLevel enum read from manifests and requested on save
- codec: encode/decode of XML payloads (strip, sensitive-only, entire payload)

Public API:

ProtectionLevel : enum
    DontSaveSensitive, ServerStorage, EncryptSensitiveWithPassword,
    EncryptAllWithPassword (plus the read-only user-key levels).
encode : function
    Serialize a payload under a protection level.
decode : function
    Parse a payload, detecting and removing its protection.

Example:
    from ispacbuild.protection import ProtectionLevel, decode, encode

    raw = encode(root, ProtectionLevel.ENCRYPT_ALL_WITH_PASSWORD, "secret")
    root = decode(raw, "secret")
"""

from .codec import (
    PayloadProtection,
    decode,
    detect_protection,
    encode,
    validate_protection,
)
from .levels import ProtectionLevel

__all__ = [
    "PayloadProtection",
    "ProtectionLevel",
    "decode",
    "detect_protection",
    "encode",
    "validate_protection",
]
