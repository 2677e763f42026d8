"""Exceptions raised by the signature recovery and change-pubkey checks.

Input problems derive from ``ValueError`` so callers that only care about
"bad input" can catch that. ``ChangePubKeyRejected`` is the outer,
request-level rejection produced by the signature checker.
"""

from __future__ import annotations


class SignatureError(ValueError):
    """Base class for signatures that cannot be recovered."""


class MalformedSignature(SignatureError):
    """Signature is not exactly 65 bytes."""


class InvalidRecoveryId(SignatureError):
    """`v` does not normalize to a recovery parity of 0 or 1."""


class RecoveryFailure(SignatureError):
    """Curve math could not produce a public key from (r, s, v)."""


class NonCanonicalSignature(SignatureError):
    """`s` lies in the upper half of the curve order (EIP-2)."""


class MessageTooLong(ValueError):
    """Message exceeds the configured recovery size limit."""


class InvalidChangePubKeyField(ValueError):
    """Pubkey hash, nonce or requester has the wrong width or range."""


class EIP1271CallFailed(ValueError):
    """The `isValidSignature` contract call itself failed."""


class ChangePubKeyRejected(Exception):
    """A change-pubkey request did not pass the signature checker."""


class IncorrectEthSignature(ChangePubKeyRejected):
    """ECDSA signature is malformed or was produced by another signer."""


class ChangePubKeyNotAuthorized(ChangePubKeyRejected):
    """Unsigned request without a matching on-chain authorization."""


class EIP1271VerificationFailed(ChangePubKeyRejected):
    """The account contract could not be asked about the signature."""


class IncorrectTx(ChangePubKeyRejected):
    """Request fields are invalid or the account contract rejected the signature."""


class SignatureCheckFailed(ChangePubKeyRejected):
    """An injected collaborator raised while one request of a batch was checked."""
