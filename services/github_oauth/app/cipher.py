"""AES-256-CBC protection of bearer tokens stored in the session cookie.

The packed format is ``<ivHex>:<cipherHex>``: a fresh 16 byte IV followed by
the PKCS7-padded ciphertext, both lowercase hex. Neither direction raises;
failures are logged and reported as ``None`` so request handlers degrade to
"no session" instead of erroring.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Optional

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

logger = logging.getLogger(__name__)

KEY_SIZE = 32
IV_SIZE = 16
_BLOCK_BITS = algorithms.AES.block_size


class TokenCipher:
    """Symmetric encryption of short secrets under a fixed 32 byte key."""

    def __init__(self, key: bytes) -> None:
        if len(key) != KEY_SIZE:
            raise ValueError(f"AES-256 key must be {KEY_SIZE} bytes, got {len(key)}")
        self._key = key

    def encrypt(self, plaintext: str) -> Optional[str]:
        try:
            iv = os.urandom(IV_SIZE)
            padder = padding.PKCS7(_BLOCK_BITS).padder()
            padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
            encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).encryptor()
            ciphertext = encryptor.update(padded) + encryptor.finalize()
        except Exception:
            logger.exception("Token encryption failed")
            return None
        return f"{iv.hex()}:{ciphertext.hex()}"

    def decrypt(self, packed: Any) -> Optional[str]:
        if not isinstance(packed, str) or ":" not in packed:
            return None
        parts = packed.split(":")
        if len(parts) < 2:
            return None
        iv_hex, cipher_hex = parts[0], parts[1]
        try:
            iv = bytes.fromhex(iv_hex)
            ciphertext = bytes.fromhex(cipher_hex)
        except ValueError:
            return None
        if len(iv) != IV_SIZE or not ciphertext:
            return None

        try:
            decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).decryptor()
            padded = decryptor.update(ciphertext) + decryptor.finalize()
            unpadder = padding.PKCS7(_BLOCK_BITS).unpadder()
            raw = unpadder.update(padded) + unpadder.finalize()
            return raw.decode("utf-8")
        except Exception as exc:
            logger.warning("Session token could not be decrypted: %s", type(exc).__name__)
            return None
