"""
Change-pubkey authorization check.

The message an account owner signs to bind a new rollup public-key hash is
the packed encoding

    new_pk_hash (20 bytes) ‖ nonce (uint32, big-endian) ‖ requester (20 bytes)

signed as an Ethereum personal message. Field order and widths are part of
the wire contract: changing either breaks every signature already produced.
"""

from __future__ import annotations

import logging
from typing import Optional

from eth_abi.packed import encode_packed
from eth_utils import to_checksum_address

from changepk.errors import InvalidChangePubKeyField
from changepk.signing.recover import AddressLike, SignatureRecoverer, canonical_address

logger = logging.getLogger(__name__)

PUBKEY_HASH_LENGTH = 20
MAX_NONCE = 2**32 - 1
CHANGE_PUBKEY_MESSAGE_TYPES = ["bytes20", "uint32", "address"]


def change_pubkey_message(new_pk_hash: bytes, nonce: int, requester: AddressLike) -> bytes:
    """
    Build the 44-byte message signed for a pubkey change.

    Raises:
        InvalidChangePubKeyField: If a field has the wrong width or range
    """
    new_pk_hash = bytes(new_pk_hash)
    if len(new_pk_hash) != PUBKEY_HASH_LENGTH:
        raise InvalidChangePubKeyField(
            f"Public key hash must be {PUBKEY_HASH_LENGTH} bytes, got {len(new_pk_hash)}"
        )
    if isinstance(nonce, bool) or not isinstance(nonce, int) or not 0 <= nonce <= MAX_NONCE:
        raise InvalidChangePubKeyField(f"Nonce must be a uint32, got {nonce!r}")
    try:
        requester_bytes = canonical_address(requester)
    except ValueError as e:
        raise InvalidChangePubKeyField(f"Invalid requester address: {e}") from e

    return encode_packed(
        CHANGE_PUBKEY_MESSAGE_TYPES,
        [new_pk_hash, nonce, to_checksum_address(requester_bytes)],
    )


class PubKeyChangeVerifier:
    """Checks that a change-pubkey message was signed by the requester."""

    def __init__(self, recoverer: Optional[SignatureRecoverer] = None):
        self.recoverer = recoverer or SignatureRecoverer()

    def verify(
        self,
        signature: bytes,
        new_pk_hash: bytes,
        nonce: int,
        requester: AddressLike,
    ) -> bool:
        """
        Return True iff `signature` over the change-pubkey message recovers to `requester`.

        A mismatched signer is a plain False. Malformed signatures and invalid
        fields raise (see `changepk.errors`).
        """
        message = change_pubkey_message(new_pk_hash, nonce, requester)
        signer = self.recoverer.recover(message, signature)
        expected = canonical_address(requester)
        if signer != expected:
            logger.debug(
                "Change-pubkey signer mismatch: recovered %s, expected %s",
                to_checksum_address(signer),
                to_checksum_address(expected),
            )
            return False
        return True


_default_verifier = PubKeyChangeVerifier()


def verify_change_pubkey(
    signature: bytes,
    new_pk_hash: bytes,
    nonce: int,
    requester: AddressLike,
) -> bool:
    return _default_verifier.verify(signature, new_pk_hash, nonce, requester)
