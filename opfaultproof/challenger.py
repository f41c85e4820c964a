"""The challenger service: challenges wrong claims, resolves games and claims bonds."""

from __future__ import annotations

import argparse
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from dotenv import load_dotenv

from .abi import parse_address
from .config import ChallengerConfig, ConfigError
from .contract import DisputeGameFactory, OPSuccinctFaultDisputeGame, ProposalStatus
from .factory import Action, FactoryClient, Mode
from .logsetup import setup_logging
from .metrics import ChallengerGauge, init_metrics
from .rpc import JsonRpcProvider
from .signer import NodeSigner

log = logging.getLogger(__name__)


@dataclass
class Challenger:
    """Watches recent dispute games and acts on them on behalf of one account."""

    config: ChallengerConfig
    challenger_address: str
    signer: Any
    l1_provider: Any
    l2_provider: Any
    factory: FactoryClient
    challenger_bond: int
    rng: random.Random = field(default_factory=random.Random, repr=False)
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    @classmethod
    def create(
        cls,
        challenger_address: str,
        signer: Any,
        l1_provider: Any,
        l2_provider: Any,
        factory: DisputeGameFactory | FactoryClient,
        config: ChallengerConfig | None = None,
    ) -> "Challenger":
        """Build a challenger, reading the config from the environment if none is given."""
        config = ChallengerConfig.from_env() if config is None else config
        client = factory if isinstance(factory, FactoryClient) else FactoryClient(factory)
        if l2_provider is None:
            l2_provider = JsonRpcProvider(config.l2_rpc)
        return cls(
            config=config,
            challenger_address=parse_address(challenger_address),
            signer=signer,
            l1_provider=l1_provider,
            l2_provider=l2_provider,
            factory=client,
            challenger_bond=client.fetch_challenger_bond(config.game_type),
        )

    def challenge_game(self, game_address: str) -> dict[str, Any]:
        """Challenge the game at ``game_address`` and return the transaction receipt."""
        game = OPSuccinctFaultDisputeGame(game_address, self.l1_provider)
        request = game.challenge_tx(self.challenger_bond)
        receipt = self.signer.send_transaction_request(self.l1_provider, request)
        log.info(
            "Successfully challenged game %s with tx %s",
            game_address,
            receipt.get("transactionHash"),
        )
        return receipt

    def get_oldest_valid_game_for_malicious_challenge(self) -> str | None:
        """Return the oldest unchallenged game whose claim is correct (for defence testing)."""
        return self.factory.get_oldest_game_address(
            self.config.max_games_to_check_for_challenge,
            self.l2_provider,
            lambda status: status == ProposalStatus.UNCHALLENGED,
            lambda output_root, game_claim: output_root == game_claim,
            "Oldest valid game for malicious challenge",
        )

    def handle_game_challenging(self) -> Action:
        """Challenge the oldest wrong game, or a valid one when malicious mode says so."""
        game_address = self.factory.get_oldest_challengable_game_address(
            self.config.max_games_to_check_for_challenge, self.l2_provider
        )
        if game_address is not None:
            log.info(
                "\x1b[32m[CHALLENGE]\x1b[0m Attempting to challenge invalid game %s",
                game_address,
            )
            self.challenge_game(game_address)
            return Action.PERFORMED

        percentage = self.config.malicious_challenge_percentage
        if percentage > 0.0:
            log.debug("Checking for valid games to challenge maliciously...")
            game_address = self.get_oldest_valid_game_for_malicious_challenge()
            if game_address is None:
                log.debug("No valid games found for malicious challenging")
            elif self.rng.uniform(0.0, 100.0) <= percentage:
                log.warning(
                    "\x1b[31m[MALICIOUS CHALLENGE]\x1b[0m Attempting to challenge valid game %s "
                    "for testing (%s%% chance)",
                    game_address,
                    percentage,
                )
                self.challenge_game(game_address)
                return Action.PERFORMED
            else:
                log.debug(
                    "Found valid game %s but skipping malicious challenge (%s%% chance)",
                    game_address,
                    percentage,
                )
        return Action.SKIPPED

    def handle_game_resolution(self) -> None:
        """Resolve challenged games whose deadline has passed."""
        self.factory.resolve_games(
            Mode.CHALLENGER,
            self.config.max_games_to_check_for_resolution,
            self.signer,
            self.l1_provider,
            self.l2_provider,
        )

    def handle_bond_claiming(self) -> Action:
        """Claim credit from the oldest game that holds some for this challenger."""
        game_address = self.factory.get_oldest_claimable_bond_game_address(
            self.config.game_type,
            self.config.max_games_to_check_for_bond_claiming,
            self.challenger_address,
        )
        if game_address is None:
            log.info("No new games to claim bonds from")
            return Action.SKIPPED

        log.info("Attempting to claim bond from game %s", game_address)
        game = OPSuccinctFaultDisputeGame(game_address, self.l1_provider)
        request = game.claim_credit_tx(self.challenger_address)
        try:
            receipt = self.signer.send_transaction_request(self.l1_provider, request)
        except Exception as exc:
            raise RuntimeError(f"Failed to claim bond from game {game_address}: {exc}") from exc
        log.info(
            "\x1b[1mSuccessfully claimed bond from game %s with tx %s\x1b[0m",
            game_address,
            receipt.get("transactionHash"),
        )
        return Action.PERFORMED

    def run_once(self) -> None:
        """Run one round of challenging, resolution and bond claiming, counting outcomes."""
        try:
            if self.handle_game_challenging() is Action.PERFORMED:
                ChallengerGauge.GAMES_CHALLENGED.increment(1.0)
        except Exception as exc:
            log.warning("Failed to handle game challenging: %r", exc)
            ChallengerGauge.GAME_CHALLENGING_ERROR.increment(1.0)

        try:
            self.handle_game_resolution()
        except Exception as exc:
            log.warning("Failed to handle game resolution: %r", exc)
            ChallengerGauge.GAME_RESOLUTION_ERROR.increment(1.0)

        try:
            if self.handle_bond_claiming() is Action.PERFORMED:
                ChallengerGauge.GAMES_BONDS_CLAIMED.increment(1.0)
        except Exception as exc:
            log.warning("Failed to handle bond claiming: %r", exc)
            ChallengerGauge.BOND_CLAIMING_ERROR.increment(1.0)

    def run(self, max_iterations: int | None = None) -> None:
        """Run rounds every ``fetch_interval`` seconds, forever unless a limit is given."""
        log.info("OP Succinct Challenger running...")
        if self.config.malicious_challenge_percentage > 0.0:
            log.warning(
                "\x1b[33mMalicious challenging enabled: %s%% of valid games will be "
                "challenged for testing\x1b[0m",
                self.config.malicious_challenge_percentage,
            )
        else:
            log.info("Honest challenger mode (malicious challenging disabled)")

        iteration = 0
        next_tick = self.clock()
        while max_iterations is None or iteration < max_iterations:
            delay = next_tick - self.clock()
            if delay > 0:
                self.sleep(delay)
            next_tick += self.config.fetch_interval
            self.run_once()
            iteration += 1


def main(argv: list[str] | None = None) -> int:
    """Start the challenger service."""
    parser = argparse.ArgumentParser(
        prog="challenger", description="Challenge invalid fault dispute games."
    )
    parser.add_argument("--env-file", default=".env.challenger")
    args = parser.parse_args(argv)

    setup_logging()
    load_dotenv(args.env_file)

    try:
        signer = NodeSigner.from_env()
        config = ChallengerConfig.from_env()
    except ConfigError as exc:
        log.error("%s", exc)
        return 1

    l1_provider = JsonRpcProvider(config.l1_rpc)
    factory = DisputeGameFactory(config.factory_address, l1_provider)
    challenger = Challenger.create(
        signer.address,
        signer,
        l1_provider,
        JsonRpcProvider(config.l2_rpc),
        factory,
        config,
    )

    ChallengerGauge.register_all()
    init_metrics(config.metrics_port)
    ChallengerGauge.init_all()

    challenger.run()
    return 0