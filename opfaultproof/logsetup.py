"""Logging configuration driven by an environment filter."""

from __future__ import annotations

import logging
import os
import sys
from typing import Mapping

LOG_ENV_VAR = "LOG_LEVEL"
HANDLER_NAME = "opfaultproof"

_LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "off": logging.CRITICAL + 10,
}


def _level(text: str) -> int:
    try:
        return _LEVELS[text.strip().lower()]
    except KeyError:
        raise ValueError(f"unknown log level {text!r}") from None


def _parse_filter(spec: str) -> tuple[int | None, dict[str, int]]:
    default: int | None = None
    targets: dict[str, int] = {}
    for directive in (part.strip() for part in spec.split(",")):
        if not directive:
            continue
        target, sep, level = directive.partition("=")
        if sep:
            target = target.strip().replace("::", ".")
            if not target:
                raise ValueError(f"empty target in directive {directive!r}")
            targets[target] = _level(level)
        else:
            default = _level(directive)
    return default, targets


def setup_logging(environ: Mapping[str, str] | None = None) -> logging.Logger:
    """Configure the root logger from the LOG_LEVEL filter, defaulting to INFO."""
    env = os.environ if environ is None else environ
    default: int | None = None
    targets: dict[str, int] = {}
    spec = env.get(LOG_ENV_VAR)
    if spec is not None:
        try:
            default, targets = _parse_filter(spec)
        except ValueError:
            default, targets = None, {}

    root = logging.getLogger()
    for handler in [h for h in root.handlers if h.get_name() == HANDLER_NAME]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)5s %(message)s"))
    root.addHandler(handler)
    root.setLevel(logging.INFO if default is None else default)
    for target, level in targets.items():
        logging.getLogger(target).setLevel(level)
    return root