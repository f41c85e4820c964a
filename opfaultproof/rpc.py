"""A small Ethereum JSON-RPC client over HTTP."""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

import requests


class RpcError(Exception):
    """Raised when a JSON-RPC request fails or returns an error."""

    def __init__(self, message: str, code: int | None = None, data: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.data = data


@dataclass(frozen=True)
class BlockHeader:
    """The header fields of a block that the fault-proof tools use."""

    number: int
    hash: bytes
    parent_hash: bytes
    state_root: bytes
    timestamp: int


def _quantity(value: str) -> int:
    return int(value, 16)


def _hex_bytes(value: str) -> bytes:
    body = value[2:] if value[:2] in ("0x", "0X") else value
    return bytes.fromhex(body)


def _block_id(block: int | str) -> str:
    if isinstance(block, bool):
        raise TypeError("block must be a number or a tag")
    if isinstance(block, int):
        if block < 0:
            raise ValueError("block number must not be negative")
        return hex(block)
    return block


def _json_value(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return hex(value)
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return value


def _header_from_json(obj: Mapping[str, Any]) -> BlockHeader:
    try:
        return BlockHeader(
            number=_quantity(obj["number"]),
            hash=_hex_bytes(obj["hash"]),
            parent_hash=_hex_bytes(obj["parentHash"]),
            state_root=_hex_bytes(obj["stateRoot"]),
            timestamp=_quantity(obj["timestamp"]),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise RpcError(f"malformed block in response: {exc}") from exc


class JsonRpcProvider:
    """Sends JSON-RPC 2.0 requests to one endpoint."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 60.0,
        session: requests.Session | None = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._session = session or requests.Session()
        self._ids = itertools.count(1)

    def __repr__(self) -> str:
        return f"JsonRpcProvider({self.url!r})"

    def request(self, method: str, params: Iterable[Any] = ()) -> Any:
        """Send one request and return its ``result``."""
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": list(params),
        }
        try:
            response = self._session.post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise RpcError(f"{method} request failed: {exc}") from exc
        try:
            body = response.json()
        except ValueError as exc:
            raise RpcError(f"{method} returned invalid JSON") from exc
        if not isinstance(body, dict):
            raise RpcError(f"{method} returned an unexpected response")
        error = body.get("error")
        if error is not None:
            if isinstance(error, dict):
                raise RpcError(
                    str(error.get("message", error)),
                    code=error.get("code"),
                    data=error.get("data"),
                )
            raise RpcError(str(error))
        if "result" not in body:
            raise RpcError(f"{method} response has no result")
        return body["result"]

    def call(self, to: str, data: bytes) -> bytes:
        """Run a read-only contract call at the latest block."""
        result = self.request("eth_call", [{"to": to, "data": "0x" + bytes(data).hex()}, "latest"])
        return _hex_bytes(result)

    def get_block_by_number(self, block: int | str) -> BlockHeader | None:
        """Return the header of a block given by number or tag, or None if unknown."""
        result = self.request("eth_getBlockByNumber", [_block_id(block), False])
        if result is None:
            return None
        return _header_from_json(result)

    def get_proof(self, address: str, block: int | str) -> dict[str, Any]:
        """Return the account proof of ``address`` with no storage keys."""
        result = self.request("eth_getProof", [address, [], _block_id(block)])
        if not isinstance(result, dict):
            raise RpcError("eth_getProof returned an unexpected response")
        return result

    def send_transaction(self, transaction: Mapping[str, Any]) -> bytes:
        """Submit a transaction for the node to sign and return its hash."""
        encoded = {key: _json_value(value) for key, value in transaction.items()}
        return _hex_bytes(self.request("eth_sendTransaction", [encoded]))

    def get_transaction_receipt(self, tx_hash: bytes | str) -> dict[str, Any] | None:
        """Return the receipt of a transaction, or None while it is pending."""
        return self.request("eth_getTransactionReceipt", [_json_value(tx_hash)])

    def block_number(self) -> int:
        """Return the number of the latest block."""
        return _quantity(self.request("eth_blockNumber", []))