"""License envelope codec.

A license record travels as an *envelope*: the record is serialised to
compact JSON, encrypted with AES-256-CBC under a key derived by
PBKDF2-HMAC-SHA512 from the application secret and a per-envelope salt,
and bundled with a SHA-256 digest over ``ciphertext_hex + salt_hex``.  The
envelope JSON is base64 encoded and wrapped into 64 character lines between
``BEGIN``/``END`` markers so it can be mailed around as a text file.

Decoding checks the digest *before* running the key derivation, so tampered
or truncated files are rejected cheaply and reported as
:class:`~tiergate.errors.IntegrityError` rather than a decryption failure.

.. warning::
   :data:`DEFAULT_SECRET` is embedded in every shipped copy of the
   application.  Anyone with the binary can derive it and mint licenses.
   It is kept so that existing license files keep decoding; it does not
   protect against a motivated attacker.  Pass a per-customer ``secret`` to
   every function here if that matters.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import logging
import os
import time
from typing import Optional, Union

from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from pydantic import ValidationError

from .errors import (
    DecryptionError,
    EnvelopeFormatError,
    IncompleteLicenseError,
    IntegrityError,
)
from .models import Envelope, LicenseRecord

logger = logging.getLogger(__name__)

Secret = Union[str, bytes]

ENVELOPE_VERSION = "3.0"
SUPPORTED_VERSIONS = {ENVELOPE_VERSION}

SALT_SIZE = 32
IV_SIZE = 16
PADDING_SIZE = 64
KEY_SIZE = 32
KDF_ITERATIONS = 100_000

LINE_WIDTH = 64
ARMOR_LABEL = "CHAHUA LICENSE"
BEGIN_MARKER = f"-----BEGIN {ARMOR_LABEL}-----"
END_MARKER = f"-----END {ARMOR_LABEL}-----"

# Fixed application secret shared by all installations (see module warning).
DEFAULT_SECRET = hashlib.sha512(
    b"chahuadev-framework-v3.0-encryption-master-key-2025"
).hexdigest()


# ---------------------------------------------------------------------------
# Primitives
# ---------------------------------------------------------------------------

def derive_key(secret: Secret, salt: bytes, iterations: int = KDF_ITERATIONS) -> bytes:
    """Stretch *secret* with *salt* into an AES-256 key."""
    if iterations < KDF_ITERATIONS:
        raise ValueError(f"KDF iterations must be at least {KDF_ITERATIONS}")
    if isinstance(secret, str):
        secret = secret.encode("utf-8")
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA512(),
        length=KEY_SIZE,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(secret)


def compute_digest(ciphertext_hex: str, salt_hex: str) -> str:
    return hashlib.sha256((ciphertext_hex + salt_hex).encode("utf-8")).hexdigest()


def _encrypt(plaintext: bytes, key: bytes, iv: bytes) -> bytes:
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    return encryptor.update(padded) + encryptor.finalize()


def _decrypt(ciphertext: bytes, key: bytes, iv: bytes) -> bytes:
    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()
    unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
    return unpadder.update(padded) + unpadder.finalize()


# ---------------------------------------------------------------------------
# Armor (text framing)
# ---------------------------------------------------------------------------

def armor(payload: str) -> str:
    """Wrap base64 *payload* into marker-delimited 64 character lines."""
    lines = [payload[i : i + LINE_WIDTH] for i in range(0, len(payload), LINE_WIDTH)]
    return "\n".join([BEGIN_MARKER, *lines, END_MARKER])


def unarmor(text: str) -> str:
    """Strip markers and whitespace, returning the bare base64 payload."""
    payload = text.replace(BEGIN_MARKER, "").replace(END_MARKER, "")
    payload = "".join(payload.split())
    if not payload:
        raise EnvelopeFormatError("License text is empty")
    return payload


# ---------------------------------------------------------------------------
# Envelope <-> text
# ---------------------------------------------------------------------------

def render_envelope(envelope: Envelope) -> str:
    raw = json.dumps(envelope.model_dump(by_alias=True), separators=(",", ":"))
    return armor(base64.b64encode(raw.encode("utf-8")).decode("ascii"))


def parse_envelope(text: str) -> Envelope:
    """Decode the armored *text* into an :class:`Envelope` without decrypting."""
    payload = unarmor(text)
    try:
        raw = base64.b64decode(payload, validate=True)
        data = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise EnvelopeFormatError(f"License envelope is not readable: {exc}") from exc

    if not isinstance(data, dict):
        raise EnvelopeFormatError("License envelope must be a JSON object")
    try:
        envelope = Envelope.model_validate(data)
    except ValidationError as exc:
        raise EnvelopeFormatError(f"License envelope is incomplete: {exc}") from exc

    if envelope.version not in SUPPORTED_VERSIONS:
        raise EnvelopeFormatError(f"Unsupported envelope version: {envelope.version}")
    return envelope


# ---------------------------------------------------------------------------
# Record <-> envelope
# ---------------------------------------------------------------------------

def seal_record(
    record: LicenseRecord,
    secret: Secret,
    iterations: int = KDF_ITERATIONS,
    created_at_ms: Optional[int] = None,
) -> Envelope:
    """Encrypt *record* into a fresh :class:`Envelope`.

    A new salt and IV are drawn on every call; envelopes for the same
    record never share key material.
    """
    plaintext = json.dumps(record.to_wire(), separators=(",", ":"), ensure_ascii=False)
    salt = os.urandom(SALT_SIZE)
    iv = os.urandom(IV_SIZE)
    key = derive_key(secret, salt, iterations)

    ciphertext_hex = _encrypt(plaintext.encode("utf-8"), key, iv).hex()
    salt_hex = salt.hex()
    return Envelope(
        version=ENVELOPE_VERSION,
        salt=salt_hex,
        iv=iv.hex(),
        ciphertext=ciphertext_hex,
        padding=os.urandom(PADDING_SIZE).hex(),
        created_at=created_at_ms if created_at_ms is not None else int(time.time() * 1000),
        digest=compute_digest(ciphertext_hex, salt_hex),
    )


def open_envelope(
    envelope: Envelope,
    secret: Secret,
    iterations: int = KDF_ITERATIONS,
) -> LicenseRecord:
    """Verify the digest of *envelope*, then decrypt it into a record."""
    expected = compute_digest(envelope.ciphertext, envelope.salt)
    if not hmac.compare_digest(expected, envelope.digest):
        raise IntegrityError("License integrity check failed: the file was modified or is corrupt")

    try:
        salt = bytes.fromhex(envelope.salt)
        iv = bytes.fromhex(envelope.iv)
        ciphertext = bytes.fromhex(envelope.ciphertext)
    except ValueError as exc:
        raise EnvelopeFormatError(f"License envelope holds invalid hex data: {exc}") from exc
    if len(iv) != IV_SIZE:
        raise EnvelopeFormatError(f"License envelope IV must be {IV_SIZE} bytes")

    key = derive_key(secret, salt, iterations)
    try:
        plaintext = _decrypt(ciphertext, key, iv)
        data = json.loads(plaintext.decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as exc:
        # JSONDecodeError is a ValueError; so are padding and block-size errors.
        raise DecryptionError(f"License decryption failed: {exc}") from exc

    if not isinstance(data, dict):
        raise DecryptionError("Decrypted license is not a JSON object")
    # Decrypted cleanly: field errors are an issuing problem.
    try:
        return LicenseRecord.model_validate(data)
    except ValidationError as exc:
        raise IncompleteLicenseError(f"Invalid or incomplete license key: {exc}") from exc


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------

def encode_envelope(
    record: LicenseRecord,
    secret: Secret = DEFAULT_SECRET,
    iterations: int = KDF_ITERATIONS,
) -> str:
    """Encrypt *record* and return the armored license text."""
    text = render_envelope(seal_record(record, secret, iterations))
    logger.debug("Encoded license %s", record.license_id)
    return text


def decode_envelope(
    text: str,
    secret: Secret = DEFAULT_SECRET,
    iterations: int = KDF_ITERATIONS,
) -> LicenseRecord:
    """Parse, authenticate and decrypt armored license *text*."""
    return open_envelope(parse_envelope(text), secret, iterations)


__all__ = [
    "DEFAULT_SECRET",
    "KDF_ITERATIONS",
    "BEGIN_MARKER",
    "END_MARKER",
    "armor",
    "unarmor",
    "derive_key",
    "compute_digest",
    "render_envelope",
    "parse_envelope",
    "seal_record",
    "open_envelope",
    "encode_envelope",
    "decode_envelope",
]
