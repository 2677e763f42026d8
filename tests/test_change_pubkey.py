import unittest

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import to_canonical_address

from changepk.errors import InvalidChangePubKeyField, InvalidRecoveryId, MalformedSignature
from changepk.signing.change_pubkey import (
    PubKeyChangeVerifier,
    change_pubkey_message,
    verify_change_pubkey,
)

PRIVATE_KEY = "0x" + "1" * 64  # Test key (DO NOT USE IN PRODUCTION)
SIGNER = Account.from_key(PRIVATE_KEY).address
SIGNER_BYTES = to_canonical_address(SIGNER)

PK_HASH = bytes.fromhex("11" * 20)
OTHER_PK_HASH = bytes.fromhex("22" * 20)
ADDRESS_B = "0x" + "bb" * 20


def sign_change_pubkey(pk_hash: bytes, nonce: int, requester, key: str = PRIVATE_KEY) -> bytes:
    message = change_pubkey_message(pk_hash, nonce, requester)
    return bytes(Account.sign_message(encode_defunct(primitive=message), private_key=key).signature)


class ChangePubKeyMessageTests(unittest.TestCase):
    def test_layout(self):
        message = change_pubkey_message(PK_HASH, 42, SIGNER_BYTES)
        self.assertEqual(len(message), 44)
        self.assertEqual(message, PK_HASH + bytes.fromhex("0000002a") + SIGNER_BYTES)

    def test_nonce_big_endian(self):
        message = change_pubkey_message(PK_HASH, 0x01020304, SIGNER_BYTES)
        self.assertEqual(message[20:24], b"\x01\x02\x03\x04")
        self.assertEqual(change_pubkey_message(PK_HASH, 2**32 - 1, SIGNER_BYTES)[20:24], b"\xff" * 4)
        self.assertEqual(change_pubkey_message(PK_HASH, 0, SIGNER_BYTES)[20:24], b"\x00" * 4)

    def test_requester_hex_or_bytes(self):
        self.assertEqual(
            change_pubkey_message(PK_HASH, 7, SIGNER),
            change_pubkey_message(PK_HASH, 7, SIGNER_BYTES),
        )
        self.assertEqual(
            change_pubkey_message(PK_HASH, 7, SIGNER.lower()),
            change_pubkey_message(PK_HASH, 7, SIGNER_BYTES),
        )

    def test_distinct_fields_distinct_messages(self):
        base = change_pubkey_message(PK_HASH, 5, SIGNER_BYTES)
        self.assertNotEqual(base, change_pubkey_message(PK_HASH, 6, SIGNER_BYTES))
        self.assertNotEqual(base, change_pubkey_message(OTHER_PK_HASH, 5, SIGNER_BYTES))
        self.assertNotEqual(base, change_pubkey_message(PK_HASH, 5, ADDRESS_B))

    def test_invalid_fields(self):
        bad_calls = [
            (PK_HASH[:19], 1, SIGNER_BYTES),
            (PK_HASH + b"\x00", 1, SIGNER_BYTES),
            (PK_HASH, -1, SIGNER_BYTES),
            (PK_HASH, 2**32, SIGNER_BYTES),
            (PK_HASH, True, SIGNER_BYTES),
            (PK_HASH, "5", SIGNER_BYTES),
            (PK_HASH, 1, SIGNER_BYTES[:19]),
            (PK_HASH, 1, "0x1234"),
            (PK_HASH, 1, "not an address"),
        ]
        for pk_hash, nonce, requester in bad_calls:
            with self.assertRaises(InvalidChangePubKeyField):
                change_pubkey_message(pk_hash, nonce, requester)


class VerifyChangePubKeyTests(unittest.TestCase):
    def test_genuine_signature(self):
        sig = sign_change_pubkey(PK_HASH, 42, SIGNER)
        self.assertTrue(verify_change_pubkey(sig, PK_HASH, 42, SIGNER))
        self.assertTrue(verify_change_pubkey(sig, PK_HASH, 42, SIGNER_BYTES))

    def test_concrete_scenario(self):
        sig = sign_change_pubkey(PK_HASH, 42, SIGNER)
        self.assertTrue(verify_change_pubkey(sig, bytes.fromhex("11" * 20), 42, SIGNER))
        self.assertFalse(verify_change_pubkey(sig, bytes.fromhex("11" * 20), 42, ADDRESS_B))

    def test_requester_mismatch_is_false(self):
        # Genuine over (pk, nonce, B) but signed by a different key than B
        sig = sign_change_pubkey(PK_HASH, 42, ADDRESS_B)
        self.assertFalse(verify_change_pubkey(sig, PK_HASH, 42, ADDRESS_B))

    def test_nonce_change_flips_result(self):
        sig = sign_change_pubkey(PK_HASH, 5, SIGNER)
        self.assertTrue(verify_change_pubkey(sig, PK_HASH, 5, SIGNER))
        self.assertFalse(verify_change_pubkey(sig, PK_HASH, 6, SIGNER))

    def test_pk_hash_change_flips_result(self):
        sig = sign_change_pubkey(PK_HASH, 5, SIGNER)
        self.assertFalse(verify_change_pubkey(sig, OTHER_PK_HASH, 5, SIGNER))

    def test_single_byte_changes_flip_result(self):
        sig = sign_change_pubkey(PK_HASH, 5, SIGNER)
        tweaked_pk = bytes([PK_HASH[0] ^ 0x01]) + PK_HASH[1:]
        self.assertFalse(verify_change_pubkey(sig, tweaked_pk, 5, SIGNER))
        tweaked_requester = SIGNER_BYTES[:-1] + bytes([SIGNER_BYTES[-1] ^ 0x01])
        self.assertFalse(verify_change_pubkey(sig, PK_HASH, 5, tweaked_requester))

    def test_idempotent(self):
        sig = sign_change_pubkey(PK_HASH, 9, SIGNER)
        verifier = PubKeyChangeVerifier()
        results = [verifier.verify(sig, PK_HASH, 9, SIGNER) for _ in range(3)]
        self.assertEqual(results, [True, True, True])
        results = [verifier.verify(sig, PK_HASH, 10, SIGNER) for _ in range(3)]
        self.assertEqual(results, [False, False, False])

    def test_malformed_signature_raises(self):
        sig = sign_change_pubkey(PK_HASH, 1, SIGNER)
        with self.assertRaises(MalformedSignature):
            verify_change_pubkey(sig[:64], PK_HASH, 1, SIGNER)
        with self.assertRaises(MalformedSignature):
            verify_change_pubkey(sig + b"\x1b", PK_HASH, 1, SIGNER)
        with self.assertRaises(InvalidRecoveryId):
            verify_change_pubkey(sig[:64] + b"\x04", PK_HASH, 1, SIGNER)


class RecordingRecoverer:
    def __init__(self, address: bytes):
        self.address = address
        self.calls = []

    def recover(self, message, signature):
        self.calls.append((message, signature))
        return self.address


class InjectedRecovererTests(unittest.TestCase):
    def test_delegates_with_canonical_message(self):
        recoverer = RecordingRecoverer(SIGNER_BYTES)
        verifier = PubKeyChangeVerifier(recoverer)
        self.assertTrue(verifier.verify(b"sig", PK_HASH, 3, SIGNER))
        self.assertEqual(recoverer.calls, [(change_pubkey_message(PK_HASH, 3, SIGNER), b"sig")])

    def test_mismatch_from_recoverer(self):
        verifier = PubKeyChangeVerifier(RecordingRecoverer(to_canonical_address(ADDRESS_B)))
        self.assertFalse(verifier.verify(b"sig", PK_HASH, 3, SIGNER))


if __name__ == "__main__":
    unittest.main()
