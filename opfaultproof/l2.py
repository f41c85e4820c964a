"""Queries against an L2 node, including local output root computation."""

from __future__ import annotations

from typing import Any

from .contract import L2Output, UINT64_MAX
from .rpc import BlockHeader, RpcError

L2_TO_L1_MESSAGE_PASSER = "0x4200000000000000000000000000000000000016"


def get_l2_block_by_number(provider: Any, block: int | str) -> BlockHeader:
    """Return the L2 block header by number or tag; raise RpcError if it is unknown."""
    header = provider.get_block_by_number(block)
    if header is None:
        raise RpcError("Failed to get L2 block by number")
    return header


def get_l2_storage_root(provider: Any, address: str, block: int | str) -> bytes:
    """Return the storage root of ``address`` at ``block``."""
    proof = provider.get_proof(address, block)
    try:
        text = proof["storageHash"]
        body = text[2:] if text[:2] in ("0x", "0X") else text
        root = bytes.fromhex(body)
    except (KeyError, TypeError, ValueError) as exc:
        raise RpcError(f"malformed proof in response: {exc}") from exc
    if len(root) != 32:
        raise RpcError("storage hash must be 32 bytes")
    return root


def compute_output_root_at_block(provider: Any, l2_block_number: int) -> bytes:
    """Compute the output root at an L2 block from its header and the message passer."""
    if l2_block_number < 0 or l2_block_number > UINT64_MAX:
        raise ValueError(f"L2 block number {l2_block_number} is out of range")
    block = get_l2_block_by_number(provider, l2_block_number)
    storage_root = get_l2_storage_root(provider, L2_TO_L1_MESSAGE_PASSER, l2_block_number)
    return L2Output(
        zero=0,
        l2_state_root=block.state_root,
        l2_storage_hash=storage_root,
        l2_claim_hash=block.hash,
    ).output_root()