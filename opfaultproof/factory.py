"""High-level queries and actions against the dispute game factory."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable

from .contract import (
    UINT32_MAX,
    AnchorStateRegistry,
    DisputeGameFactory,
    GameStatus,
    OPSuccinctFaultDisputeGame,
    ProposalStatus,
)
from .l2 import compute_output_root_at_block, get_l2_block_by_number
from .metrics import ChallengerGauge, ProposerGauge

log = logging.getLogger(__name__)


class Mode(Enum):
    """The role on whose behalf games are resolved."""

    PROPOSER = "proposer"
    CHALLENGER = "challenger"


class Action(Enum):
    """Whether a step did something or had nothing to do."""

    PERFORMED = "performed"
    SKIPPED = "skipped"


class FactoryClient:
    """Scans and acts on the games created by a dispute game factory."""

    def __init__(self, factory: DisputeGameFactory) -> None:
        self.factory = factory

    def __repr__(self) -> str:
        return f"FactoryClient({self.factory.address!r})"

    @property
    def provider(self) -> Any:
        return self.factory.provider

    def _game(self, address: str, provider: Any = None) -> OPSuccinctFaultDisputeGame:
        return OPSuccinctFaultDisputeGame(address, self.provider if provider is None else provider)

    def fetch_init_bond(self, game_type: int) -> int:
        """Return the bond required to create a game."""
        return self.factory.init_bonds(game_type)

    def fetch_challenger_bond(self, game_type: int) -> int:
        """Return the bond required to challenge a game."""
        return self._game(self.factory.game_impls(game_type)).challenger_bond()

    def fetch_latest_game_index(self) -> int | None:
        """Return the index of the newest game, or None if there are no games."""
        count = self.factory.game_count()
        if count == 0:
            log.debug("No games exist yet")
            return None
        latest = count - 1
        log.debug("Latest game index: %d", latest)
        return latest

    def fetch_game_address_by_index(self, game_index: int) -> str:
        """Return the proxy address of the game at ``game_index``."""
        return self.factory.game_at_index(game_index).proxy

    def get_latest_valid_proposal(self, l2_provider: Any) -> tuple[int, int] | None:
        """Return ``(l2_block_number, game_index)`` of the newest game with a correct claim."""
        game_index = self.fetch_latest_game_index()
        if game_index is None:
            log.info("No games exist yet for finding latest valid proposal")
            return None

        while True:
            game_address = self.fetch_game_address_by_index(game_index)
            game = self._game(game_address)
            block_number = game.l2_block_number()
            log.debug("Checking if game %s at block %d is valid", game_address, block_number)
            game_claim = game.root_claim()
            output_root = compute_output_root_at_block(l2_provider, block_number)
            if output_root == game_claim:
                break
            log.info(
                "Output root 0x%s is not same as game claim 0x%s",
                output_root.hex(),
                game_claim.hex(),
            )
            if game_index == 0:
                log.info("No valid proposals found after checking all games")
                return None
            game_index -= 1

        log.info(
            "Latest valid proposal at game index %d with l2 block number: %d",
            game_index,
            block_number,
        )
        return block_number, game_index

    def get_anchor_state_registry_address(self, game_type: int) -> str:
        """Return the anchor state registry used by the implementation of ``game_type``."""
        return self._game(self.factory.game_impls(game_type)).anchor_state_registry()

    def _registry(self, game_type: int) -> AnchorStateRegistry:
        return AnchorStateRegistry(self.get_anchor_state_registry_address(game_type), self.provider)

    def get_anchor_l2_block_number(self, game_type: int) -> int:
        """Return the L2 block number of the anchor root for ``game_type``."""
        _, block_number = self._registry(game_type).get_anchor_root()
        return block_number

    def is_game_finalized(self, game_type: int, game_address: str) -> bool:
        """Return whether the anchor registry considers the game finalized."""
        return self._registry(game_type).is_game_finalized(game_address)

    def is_claimable(self, game_type: int, game_address: str, claimant: str) -> bool:
        """Return whether ``claimant`` can claim credit from the game now."""
        game = self._game(game_address)
        claim_data = game.claim_data()
        if claim_data.status != ProposalStatus.RESOLVED:
            log.info("Game %s is not resolved yet", game_address)
            return False
        if not self.is_game_finalized(game_type, game_address):
            log.info("Game %s is resolved but not finalized", game_address)
            return False
        if game.credit(claimant) == 0:
            log.info("Claimant %s has no credit to claim from game %s", claimant, game_address)
            return False
        return True

    def get_oldest_game_address(
        self,
        max_games_to_check: int,
        l2_provider: Any,
        status_check: Callable[[ProposalStatus], bool],
        output_root_check: Callable[[bytes, bytes], bool],
        log_message: str,
    ) -> str | None:
        """Return the oldest game in the recent window that passes both checks."""
        latest = self.fetch_latest_game_index()
        if latest is None:
            log.info("No games exist yet")
            return None

        for game_index in range(max(latest - max_games_to_check, 0), latest + 1):
            game_address = self.fetch_game_address_by_index(game_index)
            game = self._game(game_address)
            claim_data = game.claim_data()

            if not status_check(claim_data.status):
                log.info(
                    "Game %s at index %d does not match status criteria, skipping",
                    game_address,
                    game_index,
                )
                continue

            current_timestamp = get_l2_block_by_number(l2_provider, "latest").timestamp
            if claim_data.deadline < current_timestamp:
                log.info(
                    "Game %s at index %d deadline %d has passed, skipping",
                    game_address,
                    game_index,
                    claim_data.deadline,
                )
                continue

            block_number = game.l2_block_number()
            game_claim = game.root_claim()
            output_root = compute_output_root_at_block(l2_provider, block_number)
            if output_root_check(output_root, game_claim):
                log.info(
                    "%s %s at game index %d with L2 block number: %d",
                    log_message,
                    game_address,
                    game_index,
                    block_number,
                )
                return game_address
        return None

    def get_oldest_challengable_game_address(
        self, max_games_to_check_for_challenge: int, l2_provider: Any
    ) -> str | None:
        """Return the oldest unchallenged game whose claim is wrong."""
        return self.get_oldest_game_address(
            max_games_to_check_for_challenge,
            l2_provider,
            lambda status: status == ProposalStatus.UNCHALLENGED,
            lambda output_root, game_claim: output_root != game_claim,
            "Oldest challengable game",
        )

    def get_oldest_defensible_game_address(
        self, max_games_to_check_for_defense: int, l2_provider: Any
    ) -> str | None:
        """Return the oldest challenged game whose claim is correct."""
        return self.get_oldest_game_address(
            max_games_to_check_for_defense,
            l2_provider,
            lambda status: status == ProposalStatus.CHALLENGED,
            lambda output_root, game_claim: output_root == game_claim,
            "Oldest defensible game",
        )

    def get_oldest_claimable_bond_game_address(
        self, game_type: int, max_games_to_check_for_bond_claiming: int, claimant: str
    ) -> str | None:
        """Return the oldest game in the recent window with credit ``claimant`` can claim."""
        latest = self.fetch_latest_game_index()
        if latest is None:
            log.info("No games exist yet for bond claiming")
            return None

        oldest = max(latest - max_games_to_check_for_bond_claiming, 0)
        games_to_check = min(latest, max_games_to_check_for_bond_claiming)
        for index in range(oldest, oldest + games_to_check):
            game_address = self.fetch_game_address_by_index(index)
            if self.is_claimable(game_type, game_address, claimant):
                return game_address
        return None

    def should_attempt_resolution(self, oldest_game_index: int) -> tuple[bool, str]:
        """Return whether to resolve from ``oldest_game_index`` on, and that game's address.

        A first game (one without a parent) is always attempted; otherwise the parent
        game must no longer be in progress.
        """
        oldest_address = self.fetch_game_address_by_index(oldest_game_index)
        parent_index = self._game(oldest_address).claim_data().parent_index
        if parent_index == UINT32_MAX:
            return True, oldest_address
        parent_address = self.fetch_game_address_by_index(parent_index)
        parent_status = self._game(parent_address).status()
        return parent_status != GameStatus.IN_PROGRESS, oldest_address

    def try_resolve_games(
        self, index: int, mode: Mode, signer: Any, l1_provider: Any, l2_provider: Any
    ) -> Action:
        """Resolve the game at ``index`` if it is in progress, in the right state and expired."""
        game_address = self.fetch_game_address_by_index(index)
        game = self._game(game_address, l1_provider)
        if game.status() != GameStatus.IN_PROGRESS:
            log.info(
                "Game %s at index %d is not in progress, not attempting resolution",
                game_address,
                index,
            )
            return Action.SKIPPED

        claim_data = game.claim_data()
        if mode is Mode.PROPOSER and claim_data.status != ProposalStatus.UNCHALLENGED:
            log.info(
                "Game %s at index %d is not unchallenged, not attempting resolution",
                game_address,
                index,
            )
            return Action.SKIPPED
        if mode is Mode.CHALLENGER and claim_data.status != ProposalStatus.CHALLENGED:
            log.info(
                "Game %s at index %d is not challenged, not attempting resolution",
                game_address,
                index,
            )
            return Action.SKIPPED

        current_timestamp = get_l2_block_by_number(l2_provider, "latest").timestamp
        if claim_data.deadline >= current_timestamp:
            log.info(
                "Game %s at index %d deadline %d has not passed, not attempting resolution",
                game_address,
                index,
                claim_data.deadline,
            )
            return Action.SKIPPED

        request = self._game(game_address).resolve_tx()
        receipt = signer.send_transaction_request(l1_provider, request)
        log.info(
            "Successfully resolved game %s at index %d with tx %s",
            game_address,
            index,
            receipt.get("transactionHash"),
        )
        return Action.PERFORMED

    def resolve_games(
        self,
        mode: Mode,
        max_games_to_check_for_resolution: int,
        signer: Any,
        l1_provider: Any,
        l2_provider: Any,
    ) -> None:
        """Try to resolve every game in the recent window, counting each resolution."""
        latest = self.fetch_latest_game_index()
        if latest is None:
            log.info("No games exist, skipping resolution")
            return

        oldest = max(latest - max_games_to_check_for_resolution, 0)
        games_to_check = min(latest, max_games_to_check_for_resolution)

        should_attempt, game_address = self.should_attempt_resolution(oldest)
        if not should_attempt:
            log.info(
                "Oldest game %s at index %d has unresolved parent, not attempting resolution",
                game_address,
                oldest,
            )
            return

        gauge = ProposerGauge.GAMES_RESOLVED if mode is Mode.PROPOSER else ChallengerGauge.GAMES_RESOLVED
        for index in range(oldest, oldest + games_to_check):
            try:
                action = self.try_resolve_games(index, mode, signer, l1_provider, l2_provider)
            except Exception as exc:  # one failing game must not stop the others
                log.debug("Resolution of game at index %d failed: %s", index, exc)
                continue
            if action is Action.PERFORMED:
                gauge.increment(1.0)