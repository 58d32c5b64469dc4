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

"""Protection levels for project payloads.

Enum values are the names used in the manifest's ProtectionLevel attribute
and on the command line (e.g. "EncryptSensitiveWithPassword").
"""

from __future__ import annotations

from enum import Enum


class ProtectionLevel(Enum):
    """Policy describing which part of a payload is encrypted on save."""

    DONT_SAVE_SENSITIVE = "DontSaveSensitive"
    SERVER_STORAGE = "ServerStorage"
    ENCRYPT_SENSITIVE_WITH_PASSWORD = "EncryptSensitiveWithPassword"
    ENCRYPT_ALL_WITH_PASSWORD = "EncryptAllWithPassword"
    # Recognised when read from a manifest; cannot be produced by this tool.
    ENCRYPT_SENSITIVE_WITH_USER_KEY = "EncryptSensitiveWithUserKey"
    ENCRYPT_ALL_WITH_USER_KEY = "EncryptAllWithUserKey"

    @classmethod
    def from_name(cls, name: str) -> ProtectionLevel:
        """Parse a protection level name, ignoring case.

        Raises:
            ValueError: If the name is not a known protection level.
        """
        wanted = name.strip().lower()
        for level in cls:
            if level.value.lower() == wanted:
                return level
        known = ", ".join(level.value for level in cls)
        raise ValueError(f"Unknown protection level {name!r}. Known: {known}")

    @property
    def requires_password(self) -> bool:
        return self in (
            ProtectionLevel.ENCRYPT_SENSITIVE_WITH_PASSWORD,
            ProtectionLevel.ENCRYPT_ALL_WITH_PASSWORD,
        )

    @property
    def encrypts_all(self) -> bool:
        return self in (
            ProtectionLevel.ENCRYPT_ALL_WITH_PASSWORD,
            ProtectionLevel.ENCRYPT_ALL_WITH_USER_KEY,
        )

    @property
    def keeps_sensitive_in_clear(self) -> bool:
        return self is ProtectionLevel.SERVER_STORAGE

    @property
    def is_saveable(self) -> bool:
        """True when the codec can produce output under this level."""
        return self not in (
            ProtectionLevel.ENCRYPT_SENSITIVE_WITH_USER_KEY,
            ProtectionLevel.ENCRYPT_ALL_WITH_USER_KEY,
        )

    def __str__(self) -> str:
        return self.value
