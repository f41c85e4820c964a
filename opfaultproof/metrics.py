"""Gauges of the fault-proof services and a Prometheus text exporter."""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from enum import Enum
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

_LOG = logging.getLogger(__name__)


@dataclass
class _Gauge:
    description: str
    value: float = 0.0


def _format_value(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    return repr(float(value))


def _escape_help(text: str) -> str:
    return text.replace("\\", "\\\\").replace("\n", "\\n")


class MetricsRegistry:
    """A thread-safe set of named gauges."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._gauges: dict[str, _Gauge] = {}

    def register(self, name: str, description: str) -> None:
        """Declare a gauge with its help text, keeping any value it already has."""
        with self._lock:
            gauge = self._gauges.setdefault(name, _Gauge(description))
            gauge.description = description

    def set(self, name: str, value: float) -> None:
        """Set a gauge to ``value``."""
        with self._lock:
            self._gauges.setdefault(name, _Gauge("")).value = float(value)

    def increment(self, name: str, value: float = 1.0) -> None:
        """Add ``value`` to a gauge."""
        with self._lock:
            self._gauges.setdefault(name, _Gauge("")).value += float(value)

    def value(self, name: str) -> float:
        """Return the current value of a gauge; raise KeyError if it is unknown."""
        with self._lock:
            return self._gauges[name].value

    def render(self) -> str:
        """Render every gauge in the Prometheus text exposition format."""
        with self._lock:
            snapshot = [(name, g.description, g.value) for name, g in self._gauges.items()]
        lines = []
        for name, description, value in snapshot:
            if description:
                lines.append(f"# HELP {name} {_escape_help(description)}")
            lines.append(f"# TYPE {name} gauge")
            lines.append(f"{name} {_format_value(value)}")
        return "".join(line + "\n" for line in lines)


REGISTRY = MetricsRegistry()


class _GaugeMember:
    """Name and help text carried by each gauge enumeration member."""

    def __init__(self, metric_name: str, description: str) -> None:
        self.metric_name = metric_name
        self.description = description

    def __str__(self) -> str:
        return self.metric_name


class ProposerGauge(_GaugeMember, Enum):
    """Gauges of the proposer."""

    FINALIZED_L2_BLOCK_NUMBER = (
        "op_succinct_fp_finalized_l2_block_number",
        "Finalized L2 block number",
    )
    LATEST_GAME_L2_BLOCK_NUMBER = (
        "op_succinct_fp_latest_game_l2_block_number",
        "Latest game L2 block number",
    )
    ANCHOR_GAME_L2_BLOCK_NUMBER = (
        "op_succinct_fp_anchor_game_l2_block_number",
        "Anchor game L2 block number",
    )
    GAMES_CREATED = (
        "op_succinct_fp_games_created",
        "Total number of games created by the proposer",
    )
    GAMES_RESOLVED = (
        "op_succinct_fp_games_resolved",
        "Total number of games resolved by the proposer",
    )
    GAMES_BONDS_CLAIMED = (
        "op_succinct_fp_games_bonds_claimed",
        "Total number of games that bonds were claimed by the proposer",
    )
    GAME_CREATION_ERROR = (
        "op_succinct_fp_game_creation_error",
        "Total number of game creation errors encountered by the proposer",
    )
    GAME_PROVING_ERROR = (
        "op_succinct_fp_game_proving_error",
        "Total number of game proving errors encountered by the proposer",
    )
    GAME_RESOLUTION_ERROR = (
        "op_succinct_fp_game_resolution_error",
        "Total number of game resolution errors encountered by the proposer",
    )
    BOND_CLAIMING_ERROR = (
        "op_succinct_fp_bond_claiming_error",
        "Total number of bond claiming errors encountered by the proposer",
    )
    METRICS_ERROR = (
        "op_succinct_fp_metrics_error",
        "Total number of metrics errors encountered by the proposer",
    )

    def increment(self, value: float = 1.0) -> None:
        """Add ``value`` to this gauge."""
        REGISTRY.increment(self.metric_name, value)

    def set(self, value: float) -> None:
        """Set this gauge to ``value``."""
        REGISTRY.set(self.metric_name, value)

    @classmethod
    def register_all(cls) -> None:
        """Declare every proposer gauge in the registry."""
        for gauge in cls:
            REGISTRY.register(gauge.metric_name, gauge.description)

    @classmethod
    def init_all(cls) -> None:
        """Reset every proposer gauge to zero."""
        for gauge in cls:
            REGISTRY.set(gauge.metric_name, 0.0)


class ChallengerGauge(_GaugeMember, Enum):
    """Gauges of the challenger."""

    GAMES_CHALLENGED = (
        "op_succinct_fp_challenger_games_challenged",
        "Total number of games challenged by the challenger",
    )
    GAMES_RESOLVED = (
        "op_succinct_fp_challenger_games_resolved",
        "Total number of games resolved by the challenger",
    )
    GAMES_BONDS_CLAIMED = (
        "op_succinct_fp_challenger_games_bonds_claimed",
        "Total number of games that bonds were claimed by the challenger",
    )
    GAME_CHALLENGING_ERROR = (
        "op_succinct_fp_challenger_game_challenging_error",
        "Total number of game challenging errors encountered by the challenger",
    )
    GAME_RESOLUTION_ERROR = (
        "op_succinct_fp_challenger_game_resolution_error",
        "Total number of game resolution errors encountered by the challenger",
    )
    BOND_CLAIMING_ERROR = (
        "op_succinct_fp_challenger_bond_claiming_error",
        "Total number of bond claiming errors encountered by the challenger",
    )

    def increment(self, value: float = 1.0) -> None:
        """Add ``value`` to this gauge."""
        REGISTRY.increment(self.metric_name, value)

    def set(self, value: float) -> None:
        """Set this gauge to ``value``."""
        REGISTRY.set(self.metric_name, value)

    @classmethod
    def register_all(cls) -> None:
        """Declare every challenger gauge in the registry."""
        for gauge in cls:
            REGISTRY.register(gauge.metric_name, gauge.description)

    @classmethod
    def init_all(cls) -> None:
        """Reset every challenger gauge to zero."""
        for gauge in cls:
            REGISTRY.set(gauge.metric_name, 0.0)


class _MetricsHandler(BaseHTTPRequestHandler):
    def do_GET(self) -> None:  # noqa: N802
        body = REGISTRY.render().encode("utf-8")
        self.send_response(200)
        self.send_header("Content-Type", "text/plain; version=0.0.4; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: object) -> None:  # noqa: A002
        """Send access lines to the module logger at debug level instead of stderr."""
        _LOG.debug("%s - %s", self.address_string(), format % args)


def init_metrics(port: int | str) -> ThreadingHTTPServer:
    """Serve the global registry over HTTP on ``port`` in a background thread."""
    server = ThreadingHTTPServer(("0.0.0.0", int(port)), _MetricsHandler)
    thread = threading.Thread(target=server.serve_forever, name="metrics-exporter", daemon=True)
    thread.start()
    return server