"""
changepk: Ethereum-signature authorization of rollup public-key changes.

Avoid importing web3 at package import time; the EIP-1271 checker and the
request-level signature checker live in `changepk.signing.eip1271` and
`changepk.signing.checker`.
"""

from changepk.signing import (
    PubKeyChangeVerifier,
    SignatureRecoverer,
    change_pubkey_message,
    recover_signer,
    verify_change_pubkey,
)

__version__ = "0.1.0"

__all__ = [
    "PubKeyChangeVerifier",
    "SignatureRecoverer",
    "change_pubkey_message",
    "recover_signer",
    "verify_change_pubkey",
]
