"""Sending contract transactions from an account managed by a node or remote signer."""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from .abi import parse_address
from .config import ConfigError
from .contract import TransactionRequest
from .rpc import JsonRpcProvider

NUM_CONFIRMATIONS = 3
TIMEOUT_SECONDS = 60

log = logging.getLogger(__name__)


class TransactionFailed(Exception):
    """Raised when a transaction reverts or is not confirmed in time."""


@dataclass
class NodeSigner:
    """An account whose transactions are signed by an RPC endpoint (``eth_sendTransaction``)."""

    address: str
    url: str | None = None
    confirmations: int = NUM_CONFIRMATIONS
    timeout: float = TIMEOUT_SECONDS
    poll_interval: float = 1.0
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    def __post_init__(self) -> None:
        self.address = parse_address(self.address)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "NodeSigner":
        """Read SIGNER_ADDRESS and the optional SIGNER_URL from ``environ``."""
        env = os.environ if environ is None else environ
        address = env.get("SIGNER_ADDRESS")
        if address is None:
            raise ConfigError("SIGNER_ADDRESS not set")
        try:
            parsed = parse_address(address)
        except ValueError as exc:
            raise ConfigError("SIGNER_ADDRESS is not a valid address") from exc
        url = env.get("SIGNER_URL") or None
        return cls(address=parsed, url=url)

    def send_transaction_request(self, provider: Any, request: TransactionRequest) -> dict[str, Any]:
        """Send ``request``, wait for its confirmations and return the receipt."""
        sender = JsonRpcProvider(self.url) if self.url else provider
        tx_hash = sender.send_transaction(
            {"from": self.address, "to": request.to, "data": request.data, "value": request.value}
        )
        log.debug("Sent transaction 0x%s", tx_hash.hex())
        deadline = self.clock() + self.timeout
        while True:
            receipt = provider.get_transaction_receipt(tx_hash)
            if receipt is not None:
                if int(receipt.get("status", "0x1"), 16) == 0:
                    raise TransactionFailed(f"transaction 0x{tx_hash.hex()} reverted")
                mined_at = int(receipt["blockNumber"], 16)
                if provider.block_number() - mined_at + 1 >= self.confirmations:
                    return receipt
            if self.clock() >= deadline:
                raise TransactionFailed(
                    f"transaction 0x{tx_hash.hex()} not confirmed within {self.timeout} seconds"
                )
            self.sleep(self.poll_interval)