"""Runtime settings for the signature checks.

Values come from the environment, optionally seeded from a dotenv file:

  CHANGEPK_MAX_MESSAGE_BYTES  upper bound on a message passed to recovery (default 4096)
  CHANGEPK_REQUIRE_LOW_S      reject signatures with s > n/2 (default false)
  CHANGEPK_CHECKER_WORKERS    thread count for batch checks (default 4)
  RPC_URL                     JSON-RPC endpoint for EIP-1271 contract checks
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_MAX_MESSAGE_BYTES = 4096
DEFAULT_CHECKER_WORKERS = 4

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class VerifierSettings:
    max_message_bytes: int = DEFAULT_MAX_MESSAGE_BYTES
    require_low_s: bool = False
    checker_workers: int = DEFAULT_CHECKER_WORKERS
    rpc_url: Optional[str] = None


def load_env(env_file: Optional[str]) -> None:
    # Load base .env first if present, then let the explicit file override it
    base_env = Path(".env")
    if base_env.exists():
        load_dotenv(base_env)
    if env_file:
        load_dotenv(env_file, override=True)


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean flag, got {raw!r}")


def load_settings(env_file: Optional[str] = None) -> VerifierSettings:
    """Build settings from the process environment.

    Args:
        env_file: Optional dotenv file loaded on top of ``./.env``.

    Raises:
        ValueError: If a variable is set to something unparsable.
    """
    load_env(env_file)
    return VerifierSettings(
        max_message_bytes=_env_int("CHANGEPK_MAX_MESSAGE_BYTES", DEFAULT_MAX_MESSAGE_BYTES),
        require_low_s=_env_bool("CHANGEPK_REQUIRE_LOW_S", False),
        checker_workers=_env_int("CHANGEPK_CHECKER_WORKERS", DEFAULT_CHECKER_WORKERS),
        rpc_url=os.getenv("RPC_URL") or None,
    )
