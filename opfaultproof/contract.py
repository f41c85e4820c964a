"""Typed access to the dispute game factory, fault dispute game and anchor registry."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Protocol

from .abi import (
    decode_address,
    decode_bytes32,
    decode_uint,
    encode_call,
    encode_uint,
    encode_bytes32,
    keccak256,
    parse_address,
)

UINT32_MAX = (1 << 32) - 1
UINT64_MAX = (1 << 64) - 1


class _CallProvider(Protocol):
    def call(self, to: str, data: bytes) -> bytes: ...


class GameStatus(IntEnum):
    """The resolution state of a dispute game."""

    IN_PROGRESS = 0
    CHALLENGER_WINS = 1
    DEFENDER_WINS = 2


class ProposalStatus(IntEnum):
    """The state of the proposal held by a fault dispute game."""

    UNCHALLENGED = 0
    CHALLENGED = 1
    UNCHALLENGED_AND_VALID_PROOF_PROVIDED = 2
    CHALLENGED_AND_VALID_PROOF_PROVIDED = 3
    RESOLVED = 4


def _bounded(value: int, limit: int, what: str) -> int:
    if value > limit:
        raise ValueError(f"{what} value {value} is out of range")
    return value


@dataclass(frozen=True)
class ClaimData:
    """The data associated with the claim of a fault dispute game."""

    parent_index: int
    countered_by: str
    prover: str
    claim: bytes
    status: ProposalStatus
    deadline: int

    @classmethod
    def from_abi(cls, data: bytes) -> "ClaimData":
        """Decode the six static words returned by ``claimData()``."""
        return cls(
            parent_index=_bounded(decode_uint(data, 0), UINT32_MAX, "parentIndex"),
            countered_by=decode_address(data, 1),
            prover=decode_address(data, 2),
            claim=decode_bytes32(data, 3),
            status=ProposalStatus(decode_uint(data, 4)),
            deadline=_bounded(decode_uint(data, 5), UINT64_MAX, "deadline"),
        )


@dataclass(frozen=True)
class L2Output:
    """The preimage of an L2 output root."""

    zero: int
    l2_state_root: bytes
    l2_storage_hash: bytes
    l2_claim_hash: bytes

    def abi_encode(self) -> bytes:
        """Return the ABI encoding of the output: four 32-byte words."""
        return (
            encode_uint(_bounded(self.zero, UINT64_MAX, "zero"))
            + encode_bytes32(self.l2_state_root)
            + encode_bytes32(self.l2_storage_hash)
            + encode_bytes32(self.l2_claim_hash)
        )

    def output_root(self) -> bytes:
        """Return the Keccak-256 hash of the encoded output."""
        return keccak256(self.abi_encode())


@dataclass(frozen=True)
class GameAtIndex:
    """A game recorded by the factory."""

    game_type: int
    timestamp: int
    proxy: str


@dataclass(frozen=True)
class TransactionRequest:
    """An unsigned contract transaction."""

    to: str
    data: bytes
    value: int = 0


class _Contract:
    def __init__(self, address: str, provider: Any) -> None:
        self.address = parse_address(address)
        self.provider = provider

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.address!r})"

    def _call(self, signature: str, *args: object) -> bytes:
        return self.provider.call(self.address, encode_call(signature, *args))

    def _tx(self, signature: str, *args: object, value: int = 0) -> TransactionRequest:
        if value < 0:
            raise ValueError("transaction value must not be negative")
        return TransactionRequest(self.address, encode_call(signature, *args), value)


class DisputeGameFactory(_Contract):
    """Read access to the dispute game factory."""

    def game_count(self) -> int:
        """Return the total number of games created by the factory."""
        return decode_uint(self._call("gameCount()"))

    def game_at_index(self, index: int) -> GameAtIndex:
        """Return the type, creation time and proxy address of the game at ``index``."""
        data = self._call("gameAtIndex(uint256)", index)
        return GameAtIndex(
            game_type=_bounded(decode_uint(data, 0), UINT32_MAX, "gameType"),
            timestamp=_bounded(decode_uint(data, 1), UINT64_MAX, "timestamp"),
            proxy=decode_address(data, 2),
        )

    def game_impls(self, game_type: int) -> str:
        """Return the implementation address registered for ``game_type``."""
        return decode_address(self._call("gameImpls(uint32)", game_type))

    def init_bonds(self, game_type: int) -> int:
        """Return the bond required to create a game of ``game_type``."""
        return decode_uint(self._call("initBonds(uint32)", game_type))


class OPSuccinctFaultDisputeGame(_Contract):
    """Access to one fault dispute game."""

    def l2_block_number(self) -> int:
        return decode_uint(self._call("l2BlockNumber()"))

    def root_claim(self) -> bytes:
        return decode_bytes32(self._call("rootClaim()"))

    def l1_head(self) -> bytes:
        return decode_bytes32(self._call("l1Head()"))

    def status(self) -> GameStatus:
        return GameStatus(decode_uint(self._call("status()")))

    def claim_data(self) -> ClaimData:
        return ClaimData.from_abi(self._call("claimData()"))

    def max_challenge_duration(self) -> int:
        return decode_uint(self._call("maxChallengeDuration()"))

    def anchor_state_registry(self) -> str:
        return decode_address(self._call("anchorStateRegistry()"))

    def challenger_bond(self) -> int:
        return decode_uint(self._call("challengerBond()"))

    def credit(self, recipient: str) -> int:
        return decode_uint(self._call("credit(address)", recipient))

    def challenge_tx(self, value: int) -> TransactionRequest:
        """Build a ``challenge()`` transaction paying the challenger bond ``value``."""
        return self._tx("challenge()", value=value)

    def resolve_tx(self) -> TransactionRequest:
        """Build a ``resolve()`` transaction."""
        return self._tx("resolve()")

    def claim_credit_tx(self, recipient: str) -> TransactionRequest:
        """Build a ``claimCredit(recipient)`` transaction."""
        return self._tx("claimCredit(address)", recipient)


class AnchorStateRegistry(_Contract):
    """Read access to the anchor state registry."""

    def get_anchor_root(self) -> tuple[bytes, int]:
        """Return the anchor root and its L2 block number."""
        data = self._call("getAnchorRoot()")
        return decode_bytes32(data, 0), decode_uint(data, 1)

    def is_game_finalized(self, game: str) -> bool:
        """Return whether ``game`` is finalized."""
        value = decode_uint(self._call("isGameFinalized(address)", game))
        if value > 1:
            raise ValueError(f"invalid boolean value {value}")
        return bool(value)