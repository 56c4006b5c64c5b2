"""
ECIES over secp256k1 for sealing profile fields to a wallet key.

Each call generates a fresh ephemeral key, derives a shared secret by ECDH
with the recipient, expands it with SHA-512 into an AES-256-CBC key and an
HMAC-SHA256 key, and authenticates ``iv || ephemeralPublicKey || ciphertext``.

Wire format (as stored on the ledger)::

    iv (16) || ephemeral public key, compressed (33) || tag (32) || ciphertext

The plaintext is the decimal ASCII rendering of the scalar.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Tuple, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac, padding
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from eth_account import Account
from eth_keys import keys

from zkpsbt.hardening import IntegrityError, ValidationError, Validators
from zkpsbt.observability import SBTLayer, get_logger, timed_operation

logger = get_logger("ecies", SBTLayer.CODEC)

CURVE = ec.SECP256K1()

IV_LENGTH = 16
EPHEMERAL_KEY_LENGTH = 33
TAG_LENGTH = 32
BLOCK_SIZE = 16
HEADER_LENGTH = IV_LENGTH + EPHEMERAL_KEY_LENGTH + TAG_LENGTH

PrivateKeyLike = Union[bytes, str, ec.EllipticCurvePrivateKey]
PublicKeyLike = Union[bytes, str, ec.EllipticCurvePublicKey]


@dataclass(frozen=True)
class EncryptedField:
    """One sealed scalar."""
    iv: bytes
    ephemeral_public_key: bytes
    tag: bytes
    ciphertext: bytes

    def to_bytes(self) -> bytes:
        return self.iv + self.ephemeral_public_key + self.tag + self.ciphertext

    def to_hex(self) -> str:
        return self.to_bytes().hex()

    @classmethod
    def parse(cls, data: Union[bytes, str, 'EncryptedField']) -> 'EncryptedField':
        """
        Split a serialized field into its parts.

        Raises IntegrityError for anything that cannot be a well-formed
        ciphertext, so callers see one failure mode for tampering.
        """
        if isinstance(data, EncryptedField):
            return data
        if isinstance(data, str):
            text = data[2:] if data.startswith("0x") else data
            try:
                data = bytes.fromhex(text)
            except ValueError:
                raise IntegrityError("Encrypted field is not valid hex")
        if not isinstance(data, (bytes, bytearray)):
            raise IntegrityError(f"Unsupported encrypted field type {type(data).__name__}")

        data = bytes(data)
        body = data[HEADER_LENGTH:]
        if not body or len(body) % BLOCK_SIZE:
            raise IntegrityError("Encrypted field has a malformed length")

        return cls(
            iv=data[:IV_LENGTH],
            ephemeral_public_key=data[IV_LENGTH:IV_LENGTH + EPHEMERAL_KEY_LENGTH],
            tag=data[IV_LENGTH + EPHEMERAL_KEY_LENGTH:HEADER_LENGTH],
            ciphertext=body,
        )


# =============================================================================
# KEYS
# =============================================================================

def _key_bytes(value: Union[bytes, str], field_name: str) -> bytes:
    return Validators.validate_bytes(value, field_name).unwrap()


def load_private_key(key: PrivateKeyLike) -> ec.EllipticCurvePrivateKey:
    """Accept a 32-byte secret (bytes or hex) or a ``cryptography`` key."""
    if isinstance(key, ec.EllipticCurvePrivateKey):
        return key
    raw = _key_bytes(key, "private_key")
    if len(raw) != 32:
        raise ValidationError("private_key", "Expected 32 bytes")
    try:
        return ec.derive_private_key(int.from_bytes(raw, "big"), CURVE)
    except ValueError as e:
        raise ValidationError("private_key", str(e))


def load_public_key(key: PublicKeyLike) -> ec.EllipticCurvePublicKey:
    """
    Accept a public key as 64 raw bytes (Ethereum style), 65-byte
    uncompressed or 33-byte compressed SEC1, hex of any of those, or a
    ``cryptography`` key.
    """
    if isinstance(key, ec.EllipticCurvePublicKey):
        return key
    raw = _key_bytes(key, "public_key")
    if len(raw) == 64:
        raw = b"\x04" + raw
    try:
        return ec.EllipticCurvePublicKey.from_encoded_point(CURVE, raw)
    except ValueError as e:
        raise ValidationError("public_key", f"Not a secp256k1 point: {e}")


def public_key_bytes(key: Union[PrivateKeyLike, PublicKeyLike]) -> bytes:
    """64-byte raw public key (no SEC1 prefix)."""
    if isinstance(key, ec.EllipticCurvePrivateKey):
        key = key.public_key()
    if not isinstance(key, ec.EllipticCurvePublicKey):
        key = load_public_key(key)
    return key.public_bytes(Encoding.X962, PublicFormat.UncompressedPoint)[1:]


def public_key_from_private(private_key: PrivateKeyLike) -> bytes:
    return public_key_bytes(load_private_key(private_key))


def address_from_public_key(public_key: PublicKeyLike) -> str:
    """Checksummed Ethereum address owning ``public_key``."""
    return keys.PublicKey(public_key_bytes(public_key)).to_checksum_address()


def generate_private_key() -> bytes:
    """Fresh 32-byte wallet secret."""
    return bytes(Account.create().key)


def generate_keypair() -> Tuple[bytes, bytes, str]:
    """New wallet key pair: (private key, 64-byte public key, address)."""
    private_key = generate_private_key()
    public_key = public_key_from_private(private_key)
    return private_key, public_key, address_from_public_key(public_key)


# =============================================================================
# ENCRYPT / DECRYPT
# =============================================================================

def _derive_keys(shared_secret: bytes) -> Tuple[bytes, bytes]:
    digest = hashes.Hash(hashes.SHA512())
    digest.update(shared_secret)
    material = digest.finalize()
    return material[:32], material[32:]


def _mac(mac_key: bytes, iv: bytes, ephemeral_uncompressed: bytes, ciphertext: bytes) -> hmac.HMAC:
    h = hmac.HMAC(mac_key, hashes.SHA256())
    h.update(iv + ephemeral_uncompressed + ciphertext)
    return h


@timed_operation(logger, "encrypt")
def encrypt(public_key: PublicKeyLike, value: int) -> EncryptedField:
    """Seal a non-negative integer to ``public_key``."""
    Validators.validate_uint(value, "value", bits=256).raise_if_invalid()
    recipient = load_public_key(public_key)

    ephemeral = ec.generate_private_key(CURVE)
    enc_key, mac_key = _derive_keys(ephemeral.exchange(ec.ECDH(), recipient))
    iv = os.urandom(IV_LENGTH)

    padder = padding.PKCS7(BLOCK_SIZE * 8).padder()
    padded = padder.update(str(value).encode("ascii")) + padder.finalize()
    encryptor = Cipher(algorithms.AES(enc_key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()

    ephemeral_public = ephemeral.public_key()
    uncompressed = ephemeral_public.public_bytes(Encoding.X962, PublicFormat.UncompressedPoint)
    tag = _mac(mac_key, iv, uncompressed, ciphertext).finalize()

    return EncryptedField(
        iv=iv,
        ephemeral_public_key=ephemeral_public.public_bytes(Encoding.X962, PublicFormat.CompressedPoint),
        tag=tag,
        ciphertext=ciphertext,
    )


@timed_operation(logger, "decrypt")
def decrypt(private_key: PrivateKeyLike, sealed: Union[bytes, str, EncryptedField]) -> int:
    """
    Recover the scalar sealed in ``sealed``.

    Raises IntegrityError if the tag does not verify (tampering or wrong
    key) or the payload is malformed.
    """
    field = EncryptedField.parse(sealed)
    recipient = load_private_key(private_key)

    try:
        ephemeral = ec.EllipticCurvePublicKey.from_encoded_point(CURVE, field.ephemeral_public_key)
    except ValueError:
        raise IntegrityError("Ephemeral public key is not a curve point")

    enc_key, mac_key = _derive_keys(recipient.exchange(ec.ECDH(), ephemeral))
    uncompressed = ephemeral.public_bytes(Encoding.X962, PublicFormat.UncompressedPoint)

    try:
        _mac(mac_key, field.iv, uncompressed, field.ciphertext).verify(field.tag)
    except InvalidSignature:
        raise IntegrityError("Authentication tag mismatch")

    decryptor = Cipher(algorithms.AES(enc_key), modes.CBC(field.iv)).decryptor()
    padded = decryptor.update(field.ciphertext) + decryptor.finalize()
    try:
        unpadder = padding.PKCS7(BLOCK_SIZE * 8).unpadder()
        plaintext = unpadder.update(padded) + unpadder.finalize()
    except ValueError:
        raise IntegrityError("Invalid padding")

    text = plaintext.decode("ascii", errors="replace")
    if not text.isdigit():
        raise IntegrityError("Plaintext is not a decimal scalar")
    return int(text)
