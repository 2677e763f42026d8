"""
EIP-1271 signature checks for contract-wallet accounts.

Contract accounts cannot produce an ECDSA signature of their own, so the
account contract is asked through `isValidSignature(bytes,bytes)` whether it
accepts the signature for the personal-message-prefixed payload.
"""

from __future__ import annotations

import logging

from web3 import Web3
from web3.exceptions import Web3Exception

from changepk.errors import EIP1271CallFailed
from changepk.signing.recover import AddressLike, canonical_address, prefixed_message

logger = logging.getLogger(__name__)

# bytes4(keccak256("isValidSignature(bytes,bytes)"))
EIP1271_MAGIC_VALUE = bytes.fromhex("20c13b0b")

EIP1271_ABI = [
    {
        "name": "isValidSignature",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "_data", "type": "bytes"},
            {"name": "_signature", "type": "bytes"},
        ],
        "outputs": [{"name": "magicValue", "type": "bytes4"}],
    }
]


class EIP1271Checker:
    """Asks an account contract whether it accepts a signature."""

    def __init__(self, w3: Web3):
        self.w3 = w3

    @classmethod
    def from_rpc_url(cls, rpc_url: str) -> "EIP1271Checker":
        return cls(Web3(Web3.HTTPProvider(rpc_url)))

    def is_valid_signature(self, address: AddressLike, message: bytes, signature: bytes) -> bool:
        """
        Call `isValidSignature` on the account contract at `address`.

        Args:
            address: Account contract address
            message: Raw message; the personal-message prefix is added here
            signature: Opaque signature bytes understood by the contract

        Returns:
            True iff the contract returned the EIP-1271 magic value

        Raises:
            EIP1271CallFailed: If the contract call reverted or the RPC failed
        """
        checksum = Web3.to_checksum_address(canonical_address(address))
        contract = self.w3.eth.contract(address=checksum, abi=EIP1271_ABI)
        try:
            result = contract.functions.isValidSignature(prefixed_message(message), bytes(signature)).call()
        except (Web3Exception, ValueError, OSError) as e:
            logger.warning("EIP-1271 call to %s failed: %s", checksum, e)
            raise EIP1271CallFailed(f"isValidSignature call to {checksum} failed: {e}") from e
        return bytes(result) == EIP1271_MAGIC_VALUE
