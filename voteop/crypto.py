"""
Operator signing and signer recovery.

Identifiers are signed as Ethereum personal messages: the 32 raw identifier
bytes are prefixed with "\\x19Ethereum Signed Message:\\n32" and hashed with
Keccak-256 before ECDSA/secp256k1 signing. Verification recovers the address
from the same prefixed hash.
"""
import re
from dataclasses import dataclass, field

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import is_address, to_hex

from .errors import InvalidSignatureFormat, KeyInitializationError, SignerMismatch

SIGNATURE_BYTES = 65
_HEX_RE = re.compile(r"^0x[0-9a-fA-F]*$")
_KEY_RE = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")
_VALID_V = (0, 1, 27, 28)


def _personal_message(identifier: bytes):
    if len(identifier) != 32:
        raise ValueError(f"identifier must be 32 bytes, got {len(identifier)}")
    return encode_defunct(primitive=identifier)


@dataclass(frozen=True)
class OperatorKey:
    """A 32-byte secp256k1 private key. Constructed once at startup."""

    secret: bytes = field(repr=False)

    def __post_init__(self):
        if not isinstance(self.secret, bytes) or len(self.secret) != 32:
            raise KeyInitializationError("Operator private key must be exactly 32 bytes")

    @classmethod
    def from_hex(cls, text) -> "OperatorKey":
        if not text:
            raise KeyInitializationError("OPERATOR_PRIVATE_KEY is not set")
        if not isinstance(text, str) or not _KEY_RE.fullmatch(text.strip()):
            raise KeyInitializationError("OPERATOR_PRIVATE_KEY must be 32 bytes of hex")
        text = text.strip()
        if text.startswith("0x"):
            text = text[2:]
        return cls(bytes.fromhex(text))


class Signer:
    """Signs identifiers with the operator key."""

    def __init__(self, key: OperatorKey):
        try:
            self._account = Account.from_key(key.secret)
        except ValueError as e:
            raise KeyInitializationError(f"Operator private key rejected: {e}") from e

    @property
    def address(self) -> str:
        return self._account.address

    def sign_identifier(self, identifier: bytes) -> str:
        signed = self._account.sign_message(_personal_message(identifier))
        return to_hex(signed.signature)


def parse_signature(signature) -> bytes:
    if not isinstance(signature, str) or not _HEX_RE.fullmatch(signature):
        raise InvalidSignatureFormat("Signature must be a 0x-prefixed hex string")
    if len(signature) != 2 + SIGNATURE_BYTES * 2:
        raise InvalidSignatureFormat(
            f"Signature must be {SIGNATURE_BYTES} bytes, got {(len(signature) - 2) / 2:g}"
        )
    raw = bytes.fromhex(signature[2:])
    v = raw[-1]
    if v not in _VALID_V:
        raise InvalidSignatureFormat(f"Signature has unrecoverable v value {v}")
    if v < 27:
        raw = raw[:-1] + bytes([v + 27])
    return raw


def recover(identifier: bytes, signature) -> str:
    """Return the checksummed address that produced `signature` over `identifier`."""
    raw = parse_signature(signature)
    try:
        return Account.recover_message(_personal_message(identifier), signature=raw)
    except Exception as e:
        raise InvalidSignatureFormat(f"Signature could not be recovered: {e}") from e


def verify(identifier: bytes, signature, expected_signer: str | None = None) -> str:
    recovered = recover(identifier, signature)
    if expected_signer and recovered.lower() != expected_signer.lower():
        raise SignerMismatch(recovered=recovered, expected=expected_signer)
    return recovered


def is_signer_address(value) -> bool:
    return isinstance(value, str) and is_address(value)
