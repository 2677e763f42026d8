"""
Signature checker for incoming change-pubkey requests.

Wraps the verifier with the request-level rules:

 - no Ethereum signature: the change must have been authorized on-chain
   beforehand (asked through an injected authorizer callable)
 - plain ECDSA signature: the recovered signer must be the account
 - EIP-1271 signature: the account contract must accept the signature

`VerifiedChangePubKey` values are only produced by `SignatureChecker.verify`,
so holding one means the request passed these checks.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Union

from eth_utils import to_checksum_address

from changepk.config import VerifierSettings
from changepk.errors import (
    ChangePubKeyNotAuthorized,
    ChangePubKeyRejected,
    EIP1271CallFailed,
    EIP1271VerificationFailed,
    IncorrectEthSignature,
    IncorrectTx,
    SignatureCheckFailed,
)
from changepk.signing.change_pubkey import PubKeyChangeVerifier, change_pubkey_message
from changepk.signing.eip1271 import EIP1271Checker
from changepk.signing.recover import SignatureRecoverer, canonical_address

logger = logging.getLogger(__name__)

# (account, nonce, new_pk_hash) -> whether the change was authorized on-chain
OnchainAuthorizer = Callable[[bytes, int, bytes], bool]


@dataclass(frozen=True)
class EthereumSignature:
    signature: bytes


@dataclass(frozen=True)
class EIP1271Signature:
    signature: bytes


TxEthSignature = Union[EthereumSignature, EIP1271Signature]


@dataclass(frozen=True)
class ChangePubKeyRequest:
    account: bytes
    nonce: int
    new_pk_hash: bytes
    eth_signature: Optional[TxEthSignature] = None

    def __post_init__(self):
        object.__setattr__(self, "account", canonical_address(self.account))
        object.__setattr__(self, "new_pk_hash", bytes(self.new_pk_hash))


class VerifiedChangePubKey:
    """A request whose Ethereum-side authorization has been checked."""

    __slots__ = ("_request",)

    def __init__(self, request: ChangePubKeyRequest, _token: object = None):
        if _token is not _VERIFIED:
            raise TypeError("VerifiedChangePubKey is created by SignatureChecker.verify")
        self._request = request

    @property
    def request(self) -> ChangePubKeyRequest:
        return self._request

    def __repr__(self) -> str:
        return f"VerifiedChangePubKey(account={to_checksum_address(self._request.account)}, nonce={self._request.nonce})"


_VERIFIED = object()


@dataclass(frozen=True)
class CheckOutcome:
    request: ChangePubKeyRequest
    verified: Optional[VerifiedChangePubKey] = None
    error: Optional[ChangePubKeyRejected] = None

    @property
    def ok(self) -> bool:
        return self.verified is not None


class SignatureChecker:
    def __init__(
        self,
        verifier: Optional[PubKeyChangeVerifier] = None,
        eip1271: Optional[EIP1271Checker] = None,
        authorizer: Optional[OnchainAuthorizer] = None,
        settings: Optional[VerifierSettings] = None,
    ):
        self.settings = settings or VerifierSettings()
        self.verifier = verifier or PubKeyChangeVerifier(SignatureRecoverer(self.settings))
        self.eip1271 = eip1271
        self.authorizer = authorizer

    def verify(self, request: ChangePubKeyRequest) -> VerifiedChangePubKey:
        """
        Check the Ethereum-side authorization of `request`.

        Raises:
            ChangePubKeyNotAuthorized: No signature and no on-chain authorization
            IncorrectEthSignature: ECDSA signature invalid or from another signer
            EIP1271VerificationFailed: The contract call itself failed
            IncorrectTx: Invalid request fields, or the account contract rejected the signature
        """
        sig = request.eth_signature
        account = to_checksum_address(request.account)

        try:
            message = change_pubkey_message(request.new_pk_hash, request.nonce, request.account)
        except ValueError as e:
            logger.info("Rejected change-pubkey for %s: %s", account, e)
            raise IncorrectTx(str(e)) from e

        if sig is None:
            self._check_onchain_authorization(request)
        elif isinstance(sig, EthereumSignature):
            try:
                matches = self.verifier.verify(sig.signature, request.new_pk_hash, request.nonce, request.account)
            except ValueError as e:
                logger.info("Rejected change-pubkey for %s: %s", account, e)
                raise IncorrectEthSignature(str(e)) from e
            if not matches:
                logger.info("Rejected change-pubkey for %s: signer mismatch", account)
                raise IncorrectEthSignature(f"Signature was not produced by {account}")
        elif isinstance(sig, EIP1271Signature):
            self._check_eip1271(request, sig, message)
        else:
            raise TypeError(f"Unsupported signature type: {type(sig).__name__}")

        return VerifiedChangePubKey(request, _VERIFIED)

    def _check_onchain_authorization(self, request: ChangePubKeyRequest) -> None:
        account = to_checksum_address(request.account)
        if self.authorizer is None:
            raise ChangePubKeyNotAuthorized(f"No signature and no on-chain authorizer for {account}")
        if not self.authorizer(request.account, request.nonce, request.new_pk_hash):
            logger.info("Change-pubkey for %s nonce %d not authorized on-chain", account, request.nonce)
            raise ChangePubKeyNotAuthorized(f"Pubkey change for {account} not authorized on-chain")

    def _check_eip1271(self, request: ChangePubKeyRequest, sig: EIP1271Signature, message: bytes) -> None:
        account = to_checksum_address(request.account)
        if self.eip1271 is None:
            raise EIP1271VerificationFailed("EIP-1271 signatures need an RPC connection (set RPC_URL)")
        try:
            accepted = self.eip1271.is_valid_signature(request.account, message, sig.signature)
        except EIP1271CallFailed as e:
            raise EIP1271VerificationFailed(str(e)) from e
        if not accepted:
            logger.info("Account contract %s rejected the change-pubkey signature", account)
            raise IncorrectTx(f"Account contract {account} rejected the signature")

    def _check_one(self, request: ChangePubKeyRequest) -> CheckOutcome:
        try:
            return CheckOutcome(request=request, verified=self.verify(request))
        except ChangePubKeyRejected as e:
            return CheckOutcome(request=request, error=e)
        except Exception as e:
            # Every request gets an outcome, even when a collaborator raises
            logger.warning("Signature check for %s failed: %r", to_checksum_address(request.account), e)
            failure = SignatureCheckFailed(f"{type(e).__name__}: {e}")
            failure.__cause__ = e
            return CheckOutcome(request=request, error=failure)

    def verify_batch(self, requests: Sequence[ChangePubKeyRequest]) -> List[CheckOutcome]:
        """Check requests concurrently; outcomes are returned in input order.

        Unexpected errors from the authorizer or EIP-1271 checker are reported
        per request as `SignatureCheckFailed`, with the original as `__cause__`.
        """
        if not requests:
            return []
        workers = min(self.settings.checker_workers, len(requests))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="signature-checker") as pool:
            return list(pool.map(self._check_one, requests))
