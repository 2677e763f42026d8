#!/usr/bin/env python3
"""
Command-line helpers for checking change-pubkey signatures.

Usage
  python -m changepk recover --message 0x... --signature 0x...
  python -m changepk verify --signature 0x... --pk-hash 0x... --nonce 42 --requester 0x...
  python -m changepk check-batch requests.json

Exit codes
  0  signature valid / signer recovered
  1  well-formed signature from another signer (or a rejected batch entry)
  2  malformed input
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from eth_utils import decode_hex, to_checksum_address
from tabulate import tabulate

from changepk.config import VerifierSettings, load_settings
from changepk.signing.change_pubkey import PubKeyChangeVerifier
from changepk.signing.recover import SignatureRecoverer


def _hex_arg(value: str) -> bytes:
    try:
        return decode_hex(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"not a hex string: {value!r} ({e})")


def _emit(args: argparse.Namespace, payload: Dict[str, Any], lines: List[str]) -> None:
    if args.as_json:
        print(json.dumps(payload))
    else:
        for line in lines:
            print(line)


def cmd_recover(args: argparse.Namespace, settings: VerifierSettings) -> int:
    message = args.message if args.message is not None else args.text.encode("utf-8")
    try:
        signer = SignatureRecoverer(settings).recover(message, args.signature)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    address = to_checksum_address(signer)
    _emit(args, {"address": address}, [f"Recovered address: {address}"])
    return 0


def cmd_verify(args: argparse.Namespace, settings: VerifierSettings) -> int:
    verifier = PubKeyChangeVerifier(SignatureRecoverer(settings))
    try:
        ok = verifier.verify(args.signature, args.pk_hash, args.nonce, args.requester)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    _emit(args, {"valid": ok}, ["true" if ok else "false"])
    return 0 if ok else 1


def _load_requests(path: Path):
    # Imported here so `recover`/`verify` don't pull in web3
    from changepk.signing.checker import ChangePubKeyRequest, EIP1271Signature, EthereumSignature

    with open(path, "r") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError("Batch file must contain a JSON list of requests")

    requests = []
    for i, entry in enumerate(data):
        try:
            if not isinstance(entry, dict):
                raise ValueError("expected an object")
            sig_hex = entry.get("signature")
            sig_type = entry.get("signature_type", "ethereum")
            if sig_hex is None:
                eth_signature = None
            elif sig_type == "ethereum":
                eth_signature = EthereumSignature(decode_hex(sig_hex))
            elif sig_type == "eip1271":
                eth_signature = EIP1271Signature(decode_hex(sig_hex))
            else:
                raise ValueError(f"unknown signature_type {sig_type!r}")
            requests.append(ChangePubKeyRequest(
                account=entry["account"],
                nonce=int(entry["nonce"]),
                new_pk_hash=decode_hex(entry["new_pk_hash"]),
                eth_signature=eth_signature,
            ))
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid request #{i}: {e}") from e
    return requests


def cmd_check_batch(args: argparse.Namespace, settings: VerifierSettings) -> int:
    from changepk.signing.checker import SignatureChecker
    from changepk.signing.eip1271 import EIP1271Checker

    try:
        requests = _load_requests(Path(args.file))
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    eip1271 = EIP1271Checker.from_rpc_url(settings.rpc_url) if settings.rpc_url else None
    checker = SignatureChecker(eip1271=eip1271, settings=settings)
    outcomes = checker.verify_batch(requests)

    rows = []
    for outcome in outcomes:
        req = outcome.request
        rows.append({
            "account": to_checksum_address(req.account),
            "nonce": req.nonce,
            "new_pk_hash": "0x" + req.new_pk_hash.hex(),
            "ok": outcome.ok,
            "error": None if outcome.ok else f"{type(outcome.error).__name__}: {outcome.error}",
        })

    if args.as_json:
        print(json.dumps(rows))
    else:
        headers = ["Account", "Nonce", "PubKey Hash", "OK", "Error"]
        table = [
            [r["account"][:10] + "...", r["nonce"], r["new_pk_hash"][:10] + "...", r["ok"], r["error"] or ""]
            for r in rows
        ]
        print(tabulate(table, headers=headers, tablefmt="grid"))

    return 0 if all(o.ok for o in outcomes) else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Change-pubkey signature tools")
    parser.add_argument("--env", dest="env_file", default=None, help="Path to .env file to load")
    parser.add_argument("--json", dest="as_json", action="store_true", help="Output JSON only")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="cmd")

    p_rec = sub.add_parser("recover", help="Recover the signer of a personal message")
    msg = p_rec.add_mutually_exclusive_group(required=True)
    msg.add_argument("--message", type=_hex_arg, default=None, help="Message bytes as 0x-hex")
    msg.add_argument("--text", default=None, help="Message as UTF-8 text")
    p_rec.add_argument("--signature", type=_hex_arg, required=True, help="65-byte signature (0x-hex)")
    p_rec.set_defaults(func=cmd_recover)

    p_ver = sub.add_parser("verify", help="Verify a change-pubkey signature")
    p_ver.add_argument("--signature", type=_hex_arg, required=True, help="65-byte signature (0x-hex)")
    p_ver.add_argument("--pk-hash", dest="pk_hash", type=_hex_arg, required=True, help="New 20-byte pubkey hash")
    p_ver.add_argument("--nonce", type=int, required=True, help="Account nonce (uint32)")
    p_ver.add_argument("--requester", required=True, help="Expected signer address")
    p_ver.set_defaults(func=cmd_verify)

    p_batch = sub.add_parser("check-batch", help="Check a JSON file of change-pubkey requests")
    p_batch.add_argument("file", help="JSON list of {account, nonce, new_pk_hash, signature, signature_type}")
    p_batch.set_defaults(func=cmd_check_batch)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 2

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = load_settings(args.env_file)
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    return args.func(args, settings)


if __name__ == "__main__":
    raise SystemExit(main())
