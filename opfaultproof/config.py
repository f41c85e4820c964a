"""Configuration of the proposer and the challenger, read from the environment."""

from __future__ import annotations

import math
import os
import re
from dataclasses import dataclass
from typing import Mapping
from urllib.parse import urlsplit

from .abi import parse_address


class ConfigError(ValueError):
    """Raised when a configuration variable is missing or malformed."""


_UINT_RE = re.compile(r"\+?[0-9]+")
_FLOAT_FORBIDDEN = re.compile(r"[\s_]")


def _required(environ: Mapping[str, str], key: str) -> str:
    value = environ.get(key)
    if value is None:
        raise ConfigError(f"{key} not set")
    return value


def _bool(environ: Mapping[str, str], key: str, default: str) -> bool:
    text = environ.get(key, default)
    if text == "true":
        return True
    if text == "false":
        return False
    raise ConfigError(f"{key} must be 'true' or 'false', got {text!r}")


def _parse_uint(key: str, text: str, bits: int) -> int:
    if not _UINT_RE.fullmatch(text):
        raise ConfigError(f"{key} must be an unsigned integer, got {text!r}")
    value = int(text)
    if value >= 1 << bits:
        raise ConfigError(f"{key} value {text} is out of range")
    return value


def _uint(environ: Mapping[str, str], key: str, default: str, bits: int) -> int:
    return _parse_uint(key, environ.get(key, default), bits)


def _float(environ: Mapping[str, str], key: str, default: str) -> float:
    text = environ.get(key, default)
    if not text or _FLOAT_FORBIDDEN.search(text):
        raise ConfigError(f"{key} must be a number, got {text!r}")
    try:
        return float(text)
    except ValueError as exc:
        raise ConfigError(f"{key} must be a number, got {text!r}") from exc


def _url(environ: Mapping[str, str], key: str) -> str:
    text = _required(environ, key)
    parts = urlsplit(text)
    if not parts.scheme or (parts.scheme in ("http", "https", "ws", "wss") and not parts.netloc):
        raise ConfigError(f"{key} is not a valid URL: {text!r}")
    return text


def _address(environ: Mapping[str, str], key: str) -> str:
    try:
        return parse_address(_required(environ, key))
    except ValueError as exc:
        if isinstance(exc, ConfigError):
            raise
        raise ConfigError(f"{key} is not a valid address") from exc


@dataclass(frozen=True)
class ProposerConfig:
    """Settings of the proposer."""

    l1_rpc: str
    l2_rpc: str
    factory_address: str
    mock_mode: bool
    fast_finality_mode: bool
    proposal_interval_in_blocks: int
    fetch_interval: int
    game_type: int
    max_games_to_check_for_defense: int
    enable_game_resolution: bool
    max_games_to_check_for_resolution: int
    max_games_to_check_for_bond_claiming: int
    safe_db_fallback: bool
    metrics_port: int

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ProposerConfig":
        """Read the proposer settings from ``environ`` (the process environment by default)."""
        env = os.environ if environ is None else environ
        return cls(
            l1_rpc=_url(env, "L1_RPC"),
            l2_rpc=_url(env, "L2_RPC"),
            factory_address=_address(env, "FACTORY_ADDRESS"),
            mock_mode=_bool(env, "MOCK_MODE", "false"),
            fast_finality_mode=_bool(env, "FAST_FINALITY_MODE", "false"),
            proposal_interval_in_blocks=_uint(env, "PROPOSAL_INTERVAL_IN_BLOCKS", "1800", 64),
            fetch_interval=_uint(env, "FETCH_INTERVAL", "30", 64),
            game_type=_parse_uint("GAME_TYPE", _required(env, "GAME_TYPE"), 32),
            max_games_to_check_for_defense=_uint(env, "MAX_GAMES_TO_CHECK_FOR_DEFENSE", "100", 64),
            enable_game_resolution=_bool(env, "ENABLE_GAME_RESOLUTION", "true"),
            max_games_to_check_for_resolution=_uint(
                env, "MAX_GAMES_TO_CHECK_FOR_RESOLUTION", "100", 64
            ),
            max_games_to_check_for_bond_claiming=_uint(
                env, "MAX_GAMES_TO_CHECK_FOR_BOND_CLAIMING", "100", 64
            ),
            safe_db_fallback=_bool(env, "SAFE_DB_FALLBACK", "false"),
            metrics_port=_uint(env, "PROPOSER_METRICS_PORT", "9000", 16),
        )


@dataclass(frozen=True)
class ChallengerConfig:
    """Settings of the challenger."""

    l1_rpc: str
    l2_rpc: str
    factory_address: str
    fetch_interval: int
    game_type: int
    max_games_to_check_for_challenge: int
    enable_game_resolution: bool
    max_games_to_check_for_resolution: int
    max_games_to_check_for_bond_claiming: int
    metrics_port: int
    malicious_challenge_percentage: float

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ChallengerConfig":
        """Read the challenger settings from ``environ`` (the process environment by default)."""
        env = os.environ if environ is None else environ
        percentage = _float(env, "MALICIOUS_CHALLENGE_PERCENTAGE", "0.0")
        if math.isnan(percentage):
            percentage = 0.0
        return cls(
            l1_rpc=_url(env, "L1_RPC"),
            l2_rpc=_url(env, "L2_RPC"),
            factory_address=_address(env, "FACTORY_ADDRESS"),
            game_type=_parse_uint("GAME_TYPE", _required(env, "GAME_TYPE"), 32),
            fetch_interval=_uint(env, "FETCH_INTERVAL", "30", 64),
            max_games_to_check_for_challenge=_uint(
                env, "MAX_GAMES_TO_CHECK_FOR_CHALLENGE", "100", 64
            ),
            enable_game_resolution=_bool(env, "ENABLE_GAME_RESOLUTION", "true"),
            max_games_to_check_for_resolution=_uint(
                env, "MAX_GAMES_TO_CHECK_FOR_RESOLUTION", "100", 64
            ),
            max_games_to_check_for_bond_claiming=_uint(
                env, "MAX_GAMES_TO_CHECK_FOR_BOND_CLAIMING", "100", 64
            ),
            metrics_port=_uint(env, "CHALLENGER_METRICS_PORT", "9001", 16),
            malicious_challenge_percentage=percentage,
        )