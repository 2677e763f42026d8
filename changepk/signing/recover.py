"""
Ethereum personal-message signature recovery.

Given an arbitrary message and a 65-byte `r ‖ s ‖ v` signature, rebuild the
EIP-191 personal-message payload, hash it with Keccak-256 and recover the
signer's 20-byte address with secp256k1 public-key recovery.

Nothing here knows which address was *expected*: a structurally valid but
wrong signature recovers to some other address and it is up to the caller to
compare.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

from eth_keys import keys
from eth_keys.constants import SECPK1_N
from eth_keys.exceptions import BadSignature
from eth_utils import ValidationError, keccak, to_canonical_address, to_checksum_address

from changepk.config import VerifierSettings
from changepk.errors import (
    InvalidRecoveryId,
    MalformedSignature,
    MessageTooLong,
    NonCanonicalSignature,
    RecoveryFailure,
)

logger = logging.getLogger(__name__)

PERSONAL_MESSAGE_PREFIX = b"\x19Ethereum Signed Message:\n"
SIGNATURE_LENGTH = 65
SECPK1_HALF_N = SECPK1_N // 2

AddressLike = Union[bytes, str]


@dataclass(frozen=True)
class PackedEthSignature:
    """A 65-byte Ethereum signature split into its components."""
    r: int
    s: int
    v: int

    @classmethod
    def from_bytes(cls, data: bytes) -> "PackedEthSignature":
        data = bytes(data)
        if len(data) != SIGNATURE_LENGTH:
            raise MalformedSignature(
                f"Signature must be {SIGNATURE_LENGTH} bytes, got {len(data)}"
            )
        return cls(
            r=int.from_bytes(data[0:32], "big"),
            s=int.from_bytes(data[32:64], "big"),
            v=data[64],
        )

    def to_bytes(self) -> bytes:
        return self.r.to_bytes(32, "big") + self.s.to_bytes(32, "big") + bytes([self.v])

    @property
    def recovery_id(self) -> int:
        """`v` normalized to a parity bit: 27/28 -> 0/1, 0/1 kept as is."""
        v = self.v - 27 if self.v >= 27 else self.v
        if v not in (0, 1):
            raise InvalidRecoveryId(f"Invalid recovery id v={self.v}")
        return v


def personal_message_hash(message: bytes) -> bytes:
    """
    Keccak-256 of the EIP-191 personal message for `message`.

    Rule: keccak(b"\\x19Ethereum Signed Message:\\n" + str(len(message)) + message)

    Matches `eth_account.messages.defunct_hash_message(primitive=message)`.
    """
    return keccak(prefixed_message(message))


def prefixed_message(message: bytes) -> bytes:
    message = bytes(message)
    return PERSONAL_MESSAGE_PREFIX + str(len(message)).encode("ascii") + message


def canonical_address(address: AddressLike) -> bytes:
    """Normalize a 20-byte address or a hex string to 20 raw bytes."""
    if isinstance(address, (bytes, bytearray)):
        if len(address) != 20:
            raise ValueError(f"Address must be 20 bytes, got {len(address)}")
        return bytes(address)
    return bytes(to_canonical_address(address))


def to_checksum(address: AddressLike) -> str:
    return to_checksum_address(canonical_address(address))


class SignatureRecoverer:
    """Recovers the signer of a personal message.

    Stateless apart from its settings; one instance can be shared between
    threads.
    """

    def __init__(self, settings: Optional[VerifierSettings] = None):
        self.settings = settings or VerifierSettings()

    def recover(self, message: bytes, signature: bytes) -> bytes:
        """
        Recover the address that signed `message`.

        Args:
            message: Raw message bytes (without the personal-message prefix)
            signature: 65 bytes, r (32) ‖ s (32) ‖ v (1)

        Returns:
            20-byte canonical address of the signer

        Raises:
            MessageTooLong: If the message exceeds the configured cap
            MalformedSignature: If the signature is not 65 bytes
            InvalidRecoveryId: If v is not one of 0, 1, 27, 28
            NonCanonicalSignature: If low-s is required and s > n/2
            RecoveryFailure: If r/s are out of range or no key can be recovered
        """
        message = bytes(message)
        if len(message) > self.settings.max_message_bytes:
            raise MessageTooLong(
                f"Message is {len(message)} bytes, limit is {self.settings.max_message_bytes}"
            )

        sig = PackedEthSignature.from_bytes(signature)
        parity = sig.recovery_id

        if not (0 < sig.r < SECPK1_N) or not (0 < sig.s < SECPK1_N):
            raise RecoveryFailure("Signature r/s out of range")
        if self.settings.require_low_s and sig.s > SECPK1_HALF_N:
            raise NonCanonicalSignature("Signature s value is in the upper half order")

        msg_hash = personal_message_hash(message)
        try:
            public_key = keys.Signature(vrs=(parity, sig.r, sig.s)).recover_public_key_from_msg_hash(msg_hash)
        except (BadSignature, ValidationError) as e:
            raise RecoveryFailure(f"Public key recovery failed: {e}") from e

        address = bytes(public_key.to_canonical_address())
        logger.debug("Recovered signer %s for %d-byte message", to_checksum_address(address), len(message))
        return address


_default_recoverer = SignatureRecoverer()


def recover_signer(message: bytes, signature: bytes) -> bytes:
    """Module-level shortcut for `SignatureRecoverer().recover` with default settings."""
    return _default_recoverer.recover(message, signature)
