from .recover import (
    PERSONAL_MESSAGE_PREFIX,
    PackedEthSignature,
    SignatureRecoverer,
    personal_message_hash,
    recover_signer,
    to_checksum,
)
from .change_pubkey import PubKeyChangeVerifier, change_pubkey_message, verify_change_pubkey

__all__ = [
    "PERSONAL_MESSAGE_PREFIX",
    "PackedEthSignature",
    "SignatureRecoverer",
    "personal_message_hash",
    "recover_signer",
    "to_checksum",
    "PubKeyChangeVerifier",
    "change_pubkey_message",
    "verify_change_pubkey",
]
