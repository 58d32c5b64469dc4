"""
Tests for ispacbuild.protection module.

Tests protection levels and the payload codec including:
- Protection level lookup and properties
- Stripping sensitive values (DontSaveSensitive)
- Per-value encryption (EncryptSensitiveWithPassword)
- Whole-payload encryption (EncryptAllWithPassword)
- Wrong, missing and tampered passwords
"""

from __future__ import annotations

import base64
import xml.etree.ElementTree as ET

import pytest

from ispacbuild.exceptions import (
    DecryptionError,
    MissingPasswordError,
    UnsupportedProtectionLevelError,
)
from ispacbuild.protection import (
    PayloadProtection,
    ProtectionLevel,
    decode,
    detect_protection,
    encode,
)
from ispacbuild.protection.codec import ENCRYPTED_DATA_TAG, ENCRYPTED_PAYLOAD_TAG

pytestmark = pytest.mark.unit

PAYLOAD = b"""<Root xmlns:SSIS="www.microsoft.com/SqlServer/SSIS">
  <Plain>visible-text</Plain>
  <Secret SSIS:Sensitive="1">s3cret</Secret>
  <Nested Sensitive="1"><Inner a="1">deep-secret</Inner>tail</Nested>
  <Empty SSIS:Sensitive="1" />
</Root>"""


# Package parameter whose container and value element both carry a marker
NESTED_PACKAGE = b"""<DTS:Executable xmlns:DTS="www.microsoft.com/SqlServer/Dts">
  <DTS:PackageParameters>
    <DTS:PackageParameter DTS:ObjectName="ApiKey" DTS:Sensitive="True">
      <DTS:Property DTS:Name="ParameterValue" DTS:DataType="8" DTS:Sensitive="1">pkg-secret</DTS:Property>
    </DTS:PackageParameter>
  </DTS:PackageParameters>
</DTS:Executable>"""

DTS_PROPERTY = ".//{www.microsoft.com/SqlServer/Dts}Property"


@pytest.fixture
def payload() -> ET.Element:
    return ET.fromstring(PAYLOAD)


@pytest.fixture
def nested_package() -> ET.Element:
    return ET.fromstring(NESTED_PACKAGE)


class TestProtectionLevel:
    """Tests for ProtectionLevel lookup and flags."""

    def test_from_name_is_case_insensitive(self):
        """Test that level names are matched case-insensitively."""
        level = ProtectionLevel.from_name("encryptsensitivewithpassword")
        assert level is ProtectionLevel.ENCRYPT_SENSITIVE_WITH_PASSWORD

    def test_from_name_unknown_raises(self):
        """Test that unknown names raise ValueError listing known levels."""
        with pytest.raises(ValueError, match="DontSaveSensitive"):
            ProtectionLevel.from_name("EncryptEverything")

    def test_password_levels(self):
        """Test which levels require a password."""
        assert ProtectionLevel.ENCRYPT_SENSITIVE_WITH_PASSWORD.requires_password
        assert ProtectionLevel.ENCRYPT_ALL_WITH_PASSWORD.requires_password
        assert not ProtectionLevel.DONT_SAVE_SENSITIVE.requires_password
        assert not ProtectionLevel.SERVER_STORAGE.requires_password

    def test_user_key_levels_not_saveable(self):
        """Test that user-key levels are readable but not saveable."""
        assert not ProtectionLevel.ENCRYPT_ALL_WITH_USER_KEY.is_saveable
        assert not ProtectionLevel.ENCRYPT_SENSITIVE_WITH_USER_KEY.is_saveable
        assert ProtectionLevel.SERVER_STORAGE.is_saveable

    def test_str_is_manifest_name(self):
        """Test that str() gives the name used in manifests."""
        assert str(ProtectionLevel.ENCRYPT_ALL_WITH_PASSWORD) == "EncryptAllWithPassword"


class TestDontSaveSensitive:
    """Tests for stripping sensitive values."""

    def test_secret_never_emitted(self, payload):
        """Test that stripped output never contains sensitive values."""
        raw = encode(payload, ProtectionLevel.DONT_SAVE_SENSITIVE)

        assert b"s3cret" not in raw
        assert b"deep-secret" not in raw
        assert b"visible-text" in raw

    def test_stripped_values_decode_as_none(self, payload):
        """Test that stripped sensitive elements come back empty."""
        root = decode(encode(payload, ProtectionLevel.DONT_SAVE_SENSITIVE))

        assert root.find("Secret").text is None
        assert len(root.find("Nested")) == 0
        assert root.find("Plain").text == "visible-text"

    def test_password_ignored(self, payload):
        """Test that a password is accepted but not needed."""
        raw = encode(payload, ProtectionLevel.DONT_SAVE_SENSITIVE, "unused")
        assert detect_protection(ET.fromstring(raw)) is PayloadProtection.NONE

    def test_input_not_mutated(self, payload):
        """Test that encoding works on a copy of the payload."""
        encode(payload, ProtectionLevel.DONT_SAVE_SENSITIVE)
        assert payload.find("Secret").text == "s3cret"

    def test_marked_container_keeps_structure(self, nested_package):
        """Test that only the innermost marked element is emptied."""
        raw = encode(nested_package, ProtectionLevel.DONT_SAVE_SENSITIVE)

        assert b"pkg-secret" not in raw
        assert b"ParameterValue" in raw
        prop = decode(raw).find(DTS_PROPERTY)
        assert prop is not None
        assert prop.text is None
        assert prop.get("{www.microsoft.com/SqlServer/Dts}DataType") == "8"


class TestServerStorage:
    """Tests for the clear-text ServerStorage level."""

    def test_values_kept_in_clear(self, payload):
        """Test that ServerStorage keeps sensitive values unencrypted."""
        raw = encode(payload, ProtectionLevel.SERVER_STORAGE)

        assert b"s3cret" in raw
        assert decode(raw).find("Secret").text == "s3cret"


class TestEncryptSensitive:
    """Tests for per-value encryption."""

    def test_round_trip(self, payload):
        """Test that sensitive values decrypt back to their original content."""
        raw = encode(payload, ProtectionLevel.ENCRYPT_SENSITIVE_WITH_PASSWORD, "pw")
        root = decode(raw, "pw")

        assert root.find("Secret").text == "s3cret"
        inner = root.find("Nested/Inner")
        assert inner is not None
        assert inner.text == "deep-secret"
        assert inner.get("a") == "1"
        assert inner.tail == "tail"

    def test_only_sensitive_values_hidden(self, payload):
        """Test that plain values stay readable and secrets are encrypted."""
        raw = encode(payload, ProtectionLevel.ENCRYPT_SENSITIVE_WITH_PASSWORD, "pw")

        assert b"visible-text" in raw
        assert b"s3cret" not in raw
        assert b"deep-secret" not in raw
        assert detect_protection(ET.fromstring(raw)) is PayloadProtection.SENSITIVE

    def test_sensitive_marker_kept(self, payload):
        """Test that encrypted elements keep their Sensitive marker."""
        raw = encode(payload, ProtectionLevel.ENCRYPT_SENSITIVE_WITH_PASSWORD, "pw")
        secret = ET.fromstring(raw).find("Secret")

        assert len(secret) == 1
        assert secret[0].tag == ENCRYPTED_DATA_TAG

    def test_empty_values_not_encrypted(self, payload):
        """Test that empty sensitive elements are left as they are."""
        raw = encode(payload, ProtectionLevel.ENCRYPT_SENSITIVE_WITH_PASSWORD, "pw")
        assert len(ET.fromstring(raw).find("Empty")) == 0

    def test_wrong_password_raises(self, payload):
        """Test that a wrong password raises DecryptionError."""
        raw = encode(payload, ProtectionLevel.ENCRYPT_SENSITIVE_WITH_PASSWORD, "pw")

        with pytest.raises(DecryptionError):
            decode(raw, "not-the-password")

    def test_missing_password_on_decode_raises(self, payload):
        """Test that decoding protected data without a password fails."""
        raw = encode(payload, ProtectionLevel.ENCRYPT_SENSITIVE_WITH_PASSWORD, "pw")

        with pytest.raises(DecryptionError, match="no password"):
            decode(raw)

    def test_tampered_ciphertext_raises(self, payload):
        """Test that modified ciphertext fails authentication."""
        raw = encode(payload, ProtectionLevel.ENCRYPT_SENSITIVE_WITH_PASSWORD, "pw")
        root = ET.fromstring(raw)
        envelope = root.find("Secret")[0]
        data = bytearray(base64.b64decode(envelope.text))
        data[0] ^= 0xFF
        envelope.text = base64.b64encode(bytes(data)).decode("ascii")

        with pytest.raises(DecryptionError):
            decode(ET.tostring(root), "pw")

    def test_corrupted_base64_raises(self, payload):
        """Test that non-base64 ciphertext is reported as DecryptionError."""
        raw = encode(payload, ProtectionLevel.ENCRYPT_SENSITIVE_WITH_PASSWORD, "pw")
        root = ET.fromstring(raw)
        root.find("Secret")[0].text = "not base64!!"

        with pytest.raises(DecryptionError, match="Corrupted"):
            decode(ET.tostring(root), "pw")

    def test_marked_container_round_trip(self, nested_package):
        """Test that a marked container keeps its property and decrypts back."""
        raw = encode(nested_package, ProtectionLevel.ENCRYPT_SENSITIVE_WITH_PASSWORD, "pw")

        assert b"pkg-secret" not in raw
        assert b"ParameterValue" in raw
        assert decode(raw, "pw").find(DTS_PROPERTY).text == "pkg-secret"


class TestEncryptAll:
    """Tests for whole-payload encryption."""

    def test_round_trip(self, payload):
        """Test that the whole document decrypts back."""
        raw = encode(payload, ProtectionLevel.ENCRYPT_ALL_WITH_PASSWORD, "pw")
        root = decode(raw, "pw")

        assert root.tag == "Root"
        assert root.find("Plain").text == "visible-text"
        assert root.find("Secret").text == "s3cret"

    def test_nothing_readable(self, payload):
        """Test that no content is readable without the password."""
        raw = encode(payload, ProtectionLevel.ENCRYPT_ALL_WITH_PASSWORD, "pw")

        assert b"visible-text" not in raw
        assert b"s3cret" not in raw
        assert ET.fromstring(raw).tag == ENCRYPTED_PAYLOAD_TAG

    def test_wrong_password_raises(self, payload):
        """Test that a wrong password raises DecryptionError."""
        raw = encode(payload, ProtectionLevel.ENCRYPT_ALL_WITH_PASSWORD, "pw")

        with pytest.raises(DecryptionError):
            decode(raw, "other")

    def test_excessive_iteration_count_rejected(self, payload):
        """Test that an oversized iteration count fails before key derivation."""
        raw = encode(payload, ProtectionLevel.ENCRYPT_ALL_WITH_PASSWORD, "pw")
        envelope = ET.fromstring(raw)
        envelope.set("Iterations", "10000000000")

        with pytest.raises(DecryptionError, match="exceeds the maximum"):
            decode(ET.tostring(envelope), "pw")


class TestEncodeValidation:
    """Tests for encode argument validation."""

    @pytest.mark.parametrize(
        "level",
        [
            ProtectionLevel.ENCRYPT_SENSITIVE_WITH_PASSWORD,
            ProtectionLevel.ENCRYPT_ALL_WITH_PASSWORD,
        ],
    )
    def test_password_level_without_password(self, payload, level):
        """Test that password levels refuse to encode without a password."""
        with pytest.raises(MissingPasswordError):
            encode(payload, level)

    @pytest.mark.parametrize(
        "level",
        [
            ProtectionLevel.ENCRYPT_SENSITIVE_WITH_USER_KEY,
            ProtectionLevel.ENCRYPT_ALL_WITH_USER_KEY,
        ],
    )
    def test_user_key_levels_unsupported(self, payload, level):
        """Test that user-key levels cannot be produced."""
        with pytest.raises(UnsupportedProtectionLevelError):
            encode(payload, level, "pw")
