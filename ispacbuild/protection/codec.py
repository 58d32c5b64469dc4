# Copyright 2025 Roger Cibrian
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Protected payload codec.

Turns a parsed project document plus a protection level and password into
bytes, and reverses the transform on load. The protection applied to a
document is detected from the bytes themselves, never from caller metadata.

Wire Format:

- Unprotected: the plain XML document.
- Sensitive-only: the content of every element marked Sensitive="1" is
  replaced by a single child

      <EncryptedData Salt="..." IV="..." Iterations="...">base64</EncryptedData>

  All values of one document share the same salt (and therefore key).
- Entire payload: the serialized document is encrypted and wrapped as

      <EncryptedPayload Salt="..." IV="..." Iterations="...">base64</EncryptedPayload>

Cryptography:

- Key derivation: PBKDF2-HMAC-SHA256, 16-byte random salt, 32-byte key.
- Cipher: AES-256-GCM with a 12-byte random nonce. The GCM tag makes a
  wrong password or tampered ciphertext fail deterministically.

Example:
    Round-trip a document with a sensitive value:
        ```python
        from ispacbuild.protection import ProtectionLevel, decode, encode

        raw = encode(root, ProtectionLevel.ENCRYPT_SENSITIVE_WITH_PASSWORD, "pw")
        restored = decode(raw, "pw")
        ```
"""

from __future__ import annotations

import base64
import binascii
import copy
from enum import Enum
import os
from xml.sax.saxutils import escape
import xml.etree.ElementTree as ET

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ispacbuild.exceptions import (
    DecryptionError,
    MissingPasswordError,
    UnsupportedProtectionLevelError,
)
from ispacbuild.logging import get_global_logger
from ispacbuild.protection.levels import ProtectionLevel
from ispacbuild.xmlutil import iter_sensitive, local_name, parse_xml, to_bytes

ENCRYPTED_DATA_TAG = "EncryptedData"
ENCRYPTED_PAYLOAD_TAG = "EncryptedPayload"
ALGORITHM = "AES-256-GCM"

KDF_ITERATIONS = 100_000
MAX_KDF_ITERATIONS = 10 * KDF_ITERATIONS
SALT_SIZE = 16
NONCE_SIZE = 12
KEY_SIZE = 32


class PayloadProtection(Enum):
    """Protection detected on an encoded payload."""

    NONE = "none"
    SENSITIVE = "sensitive"
    ALL = "all"


def derive_key(password: str, salt: bytes, iterations: int = KDF_ITERATIONS) -> bytes:
    """Derive a 256-bit AES key from a password with PBKDF2-HMAC-SHA256."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(password.encode("utf-8"))


class _KeyRing:
    """Caches derived keys per (salt, iterations) for one password."""

    def __init__(self, password: str | None) -> None:
        self._password = password
        self._keys: dict[tuple[bytes, int], bytes] = {}

    def key_for(self, salt: bytes, iterations: int) -> bytes:
        if not self._password:
            raise DecryptionError(
                "Payload is password protected but no password was supplied."
            )
        cache_key = (salt, iterations)
        if cache_key not in self._keys:
            self._keys[cache_key] = derive_key(self._password, salt, iterations)
        return self._keys[cache_key]


def detect_protection(root: ET.Element) -> PayloadProtection:
    """Classify a parsed payload by the encryption markers it contains."""
    if local_name(root.tag) == ENCRYPTED_PAYLOAD_TAG:
        return PayloadProtection.ALL
    for element in root.iter():
        if local_name(element.tag) == ENCRYPTED_DATA_TAG:
            return PayloadProtection.SENSITIVE
    return PayloadProtection.NONE


# -------------------------------
# Low-level encryption helpers
# -------------------------------


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _unb64(text: str | None, what: str) -> bytes:
    try:
        return base64.b64decode((text or "").strip().encode("ascii"), validate=True)
    except (binascii.Error, ValueError) as err:
        raise DecryptionError(f"Corrupted {what}: {err}") from err


def _make_envelope(tag: str, plaintext: bytes, key: bytes, salt: bytes) -> ET.Element:
    nonce = os.urandom(NONCE_SIZE)
    ciphertext = AESGCM(key).encrypt(nonce, plaintext, None)
    envelope = ET.Element(tag)
    envelope.set("Algorithm", ALGORITHM)
    envelope.set("Salt", _b64(salt))
    envelope.set("IV", _b64(nonce))
    envelope.set("Iterations", str(KDF_ITERATIONS))
    envelope.text = _b64(ciphertext)
    return envelope


def _open_envelope(envelope: ET.Element, keys: _KeyRing) -> bytes:
    salt = _unb64(envelope.get("Salt"), "salt")
    nonce = _unb64(envelope.get("IV"), "IV")
    ciphertext = _unb64(envelope.text, "ciphertext")
    try:
        iterations = int(envelope.get("Iterations", str(KDF_ITERATIONS)))
    except ValueError as err:
        raise DecryptionError(f"Corrupted iteration count: {err}") from err
    if iterations < 1 or len(nonce) != NONCE_SIZE:
        raise DecryptionError("Corrupted encryption header.")
    if iterations > MAX_KDF_ITERATIONS:
        raise DecryptionError(
            f"Iteration count {iterations} exceeds the maximum of {MAX_KDF_ITERATIONS}."
        )

    key = keys.key_for(salt, iterations)
    try:
        return AESGCM(key).decrypt(nonce, ciphertext, None)
    except InvalidTag as err:
        raise DecryptionError(
            "Failed to decrypt payload. The password is incorrect or the data is corrupted."
        ) from err


def _inner_xml(element: ET.Element) -> str:
    # ET.tostring includes each child's tail, so text + children is lossless
    parts = [escape(element.text or "")]
    parts.extend(ET.tostring(child, encoding="unicode") for child in element)
    return "".join(parts)


def _replace_content(element: ET.Element, inner: str) -> None:
    holder = parse_xml(f"<_>{inner}</_>".encode("utf-8"), "sensitive value")
    for child in list(element):
        element.remove(child)
    element.text = holder.text
    element.extend(list(holder))


# -------------------------------
# Sensitive-only protection
# -------------------------------


def _strip_sensitive(root: ET.Element) -> int:
    count = 0
    for element in list(iter_sensitive(root)):
        for child in list(element):
            element.remove(child)
        element.text = None
        count += 1
    return count


def _encrypt_sensitive(root: ET.Element, key: bytes, salt: bytes) -> int:
    count = 0
    for element in list(iter_sensitive(root)):
        inner = _inner_xml(element)
        if not inner:
            continue
        envelope = _make_envelope(ENCRYPTED_DATA_TAG, inner.encode("utf-8"), key, salt)
        for child in list(element):
            element.remove(child)
        element.text = None
        element.append(envelope)
        count += 1
    return count


def _decrypt_sensitive(root: ET.Element, keys: _KeyRing) -> int:
    count = 0
    for parent in list(root.iter()):
        envelopes = [c for c in parent if local_name(c.tag) == ENCRYPTED_DATA_TAG]
        if not envelopes:
            continue
        if len(envelopes) != 1 or len(parent) != 1:
            raise DecryptionError(
                f"Element {local_name(parent.tag)} mixes encrypted and clear content."
            )
        plaintext = _open_envelope(envelopes[0], keys)
        _replace_content(parent, plaintext.decode("utf-8"))
        count += 1
    return count


# -------------------------------
# Public API
# -------------------------------


def validate_protection(protection_level: ProtectionLevel, password: str | None) -> None:
    """Check that a payload can be encoded under the level with this password.

    Raises:
        UnsupportedProtectionLevelError: For the user-key levels.
        MissingPasswordError: If a password-based level lacks a password.
    """
    if not protection_level.is_saveable:
        raise UnsupportedProtectionLevelError(protection_level.value)
    if protection_level.requires_password and not password:
        raise MissingPasswordError(protection_level.value)


def decode(raw: bytes, password: str | None = None) -> ET.Element:
    """Parse an encoded payload, decrypting whatever protection it carries.

    Args:
        raw: Encoded document bytes.
        password: Password used when the payload was encoded. Ignored for
            unprotected payloads.

    Returns:
        Root element of the plain document. Sensitive elements keep their
        Sensitive="1" marker and hold their clear values.

    Raises:
        InvalidFormatError: If the bytes (or decrypted bytes) are not XML.
        DecryptionError: If the payload is protected and the password is
            missing or wrong, or the encrypted data was tampered with.
    """
    logger = get_global_logger()
    root = parse_xml(raw)
    keys = _KeyRing(password)

    protection = detect_protection(root)
    logger.debug("CODEC", f"Detected protection: {protection.value}")

    if protection is PayloadProtection.ALL:
        root = parse_xml(_open_envelope(root, keys), "decrypted payload")

    if detect_protection(root) is PayloadProtection.SENSITIVE:
        count = _decrypt_sensitive(root, keys)
        logger.debug("CODEC", f"Decrypted {count} sensitive value(s)")

    return root


def encode(
    payload: ET.Element,
    protection_level: ProtectionLevel,
    password: str | None = None,
) -> bytes:
    """Serialize a payload under the given protection level.

    The caller's element tree is never modified.

    Args:
        payload: Root element of the plain document.
        protection_level: Policy to apply.
        password: Required for the password-based levels.

    Returns:
        Encoded document bytes.

    Raises:
        MissingPasswordError: If a password-based level is requested without
            a password.
        UnsupportedProtectionLevelError: For the user-key levels.
    """
    logger = get_global_logger()
    validate_protection(protection_level, password)

    document = copy.deepcopy(payload)

    if protection_level is ProtectionLevel.DONT_SAVE_SENSITIVE:
        count = _strip_sensitive(document)
        logger.debug("CODEC", f"Stripped {count} sensitive value(s)")
        return to_bytes(document)

    if protection_level.keeps_sensitive_in_clear:
        return to_bytes(document)

    salt = os.urandom(SALT_SIZE)
    key = derive_key(password, salt)

    if protection_level.encrypts_all:
        envelope = _make_envelope(ENCRYPTED_PAYLOAD_TAG, to_bytes(document), key, salt)
        logger.debug("CODEC", "Encrypted entire payload")
        return to_bytes(envelope)

    count = _encrypt_sensitive(document, key, salt)
    logger.debug("CODEC", f"Encrypted {count} sensitive value(s)")
    return to_bytes(document)
