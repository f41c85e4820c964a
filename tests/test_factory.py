from dataclasses import dataclass, field

import pytest

from opfaultproof.abi import (
    decode_address,
    decode_uint,
    encode_address,
    encode_bytes32,
    encode_uint,
    function_selector,
)
from opfaultproof.contract import (
    UINT32_MAX,
    DisputeGameFactory,
    GameStatus,
    ProposalStatus,
)
from opfaultproof.factory import Action, FactoryClient, Mode
from opfaultproof.l2 import compute_output_root_at_block
from opfaultproof.metrics import REGISTRY, ChallengerGauge, ProposerGauge
from opfaultproof.rpc import BlockHeader

FACTORY = "0x" + "11" * 20
IMPL = "0x" + "22" * 20
REGISTRY_ADDRESS = "0x" + "33" * 20
CLAIMANT = "0x" + "44" * 20
ZERO_ADDRESS = "0x" + "00" * 20
LATEST_TIMESTAMP = 1000


def sel(signature):
    return function_selector(signature)


class FakeL2:
    def get_block_by_number(self, block):
        if block == "latest":
            return BlockHeader(
                number=5000,
                hash=b"\x01" * 32,
                parent_hash=b"\x02" * 32,
                state_root=b"\x03" * 32,
                timestamp=LATEST_TIMESTAMP,
            )
        return BlockHeader(
            number=block,
            hash=(block % 251 + 1).to_bytes(1, "big") * 32,
            parent_hash=b"\x00" * 32,
            state_root=(block % 7 + 10).to_bytes(1, "big") * 32,
            timestamp=block,
        )

    def get_proof(self, address, block):
        return {"storageHash": "0x" + "55" * 32}


L2 = FakeL2()


def valid_claim(block):
    return compute_output_root_at_block(L2, block)


def invalid_claim():
    return b"\xee" * 32


@dataclass
class FakeGame:
    l2_block: int
    root_claim: bytes
    proposal_status: ProposalStatus = ProposalStatus.UNCHALLENGED
    game_status: GameStatus = GameStatus.IN_PROGRESS
    deadline: int = 10_000
    parent_index: int = UINT32_MAX
    credits: dict = field(default_factory=dict)


class FakeL1:
    def __init__(self, games=()):
        self.games = []
        self.by_address = {}
        self.finalized = set()
        self.init_bond = 7
        self.challenger_bond = 3
        self.anchor_block = 42
        for game in games:
            self.add(game)

    def add(self, game):
        address = "0x" + f"{0xa0 + len(self.games):040x}"
        self.games.append(address)
        self.by_address[address] = game
        return address

    def call(self, to, data):
        selector, args = data[:4], data[4:]
        if to == FACTORY:
            if selector == sel("gameCount()"):
                return encode_uint(len(self.games))
            if selector == sel("gameAtIndex(uint256)"):
                address = self.games[decode_uint(args)]
                return encode_uint(1) + encode_uint(0) + encode_address(address)
            if selector == sel("gameImpls(uint32)"):
                return encode_address(IMPL)
            if selector == sel("initBonds(uint32)"):
                return encode_uint(self.init_bond)
        elif to == IMPL:
            if selector == sel("challengerBond()"):
                return encode_uint(self.challenger_bond)
            if selector == sel("anchorStateRegistry()"):
                return encode_address(REGISTRY_ADDRESS)
        elif to == REGISTRY_ADDRESS:
            if selector == sel("getAnchorRoot()"):
                return encode_bytes32(b"\xaa" * 32) + encode_uint(self.anchor_block)
            if selector == sel("isGameFinalized(address)"):
                return encode_uint(int(decode_address(args) in self.finalized))
        elif to in self.by_address:
            game = self.by_address[to]
            if selector == sel("l2BlockNumber()"):
                return encode_uint(game.l2_block)
            if selector == sel("rootClaim()"):
                return encode_bytes32(game.root_claim)
            if selector == sel("status()"):
                return encode_uint(int(game.game_status))
            if selector == sel("claimData()"):
                return (
                    encode_uint(game.parent_index)
                    + encode_address(ZERO_ADDRESS)
                    + encode_address(ZERO_ADDRESS)
                    + encode_bytes32(game.root_claim)
                    + encode_uint(int(game.proposal_status))
                    + encode_uint(game.deadline)
                )
            if selector == sel("credit(address)"):
                return encode_uint(game.credits.get(decode_address(args), 0))
        raise AssertionError(f"unexpected call to {to}")


class FakeSigner:
    def __init__(self, fail_first=False):
        self.requests = []
        self.fail_first = fail_first

    def send_transaction_request(self, provider, request):
        self.requests.append(request)
        if self.fail_first and len(self.requests) == 1:
            raise RuntimeError("send failed")
        return {"transactionHash": "0x" + "ab" * 32}


def client_for(l1):
    return FactoryClient(DisputeGameFactory(FACTORY, l1))


def test_latest_game_index_none_when_empty():
    assert client_for(FakeL1()).fetch_latest_game_index() is None


def test_latest_game_index_is_count_minus_one():
    l1 = FakeL1([FakeGame(100, invalid_claim()) for _ in range(4)])
    assert client_for(l1).fetch_latest_game_index() == 3


def test_bonds_and_addresses():
    l1 = FakeL1([FakeGame(100, invalid_claim())])
    client = client_for(l1)
    assert client.fetch_init_bond(1) == 7
    assert client.fetch_challenger_bond(1) == 3
    assert client.fetch_game_address_by_index(0) == l1.games[0]


def test_anchor_registry_and_block_number():
    client = client_for(FakeL1())
    assert client.get_anchor_state_registry_address(1) == REGISTRY_ADDRESS
    assert client.get_anchor_l2_block_number(1) == 42


def test_latest_valid_proposal_skips_invalid_newer_games():
    l1 = FakeL1(
        [
            FakeGame(100, valid_claim(100)),
            FakeGame(200, valid_claim(200)),
            FakeGame(300, invalid_claim()),
        ]
    )
    assert client_for(l1).get_latest_valid_proposal(L2) == (200, 1)


def test_latest_valid_proposal_none_when_all_invalid():
    l1 = FakeL1([FakeGame(100, invalid_claim()), FakeGame(200, invalid_claim())])
    assert client_for(l1).get_latest_valid_proposal(L2) is None


def test_latest_valid_proposal_none_when_no_games():
    assert client_for(FakeL1()).get_latest_valid_proposal(L2) is None


def test_is_claimable_conditions():
    game = FakeGame(100, valid_claim(100))
    l1 = FakeL1([game])
    client = client_for(l1)
    address = l1.games[0]
    assert client.is_claimable(1, address, CLAIMANT) is False
    game.proposal_status = ProposalStatus.RESOLVED
    assert client.is_claimable(1, address, CLAIMANT) is False
    l1.finalized.add(address)
    assert client.is_game_finalized(1, address) is True
    assert client.is_claimable(1, address, CLAIMANT) is False
    game.credits[CLAIMANT] = 5
    assert client.is_claimable(1, address, CLAIMANT) is True


def test_oldest_challengable_game_picks_first_invalid():
    l1 = FakeL1(
        [
            FakeGame(100, valid_claim(100)),
            FakeGame(200, invalid_claim()),
            FakeGame(300, invalid_claim()),
        ]
    )
    assert client_for(l1).get_oldest_challengable_game_address(100, L2) == l1.games[1]


def test_oldest_challengable_skips_expired_and_wrong_status():
    l1 = FakeL1(
        [
            FakeGame(100, invalid_claim(), deadline=LATEST_TIMESTAMP - 1),
            FakeGame(200, invalid_claim(), proposal_status=ProposalStatus.CHALLENGED),
            FakeGame(300, invalid_claim()),
        ]
    )
    assert client_for(l1).get_oldest_challengable_game_address(100, L2) == l1.games[2]


def test_oldest_challengable_none_when_all_valid():
    l1 = FakeL1([FakeGame(100, valid_claim(100)), FakeGame(200, valid_claim(200))])
    assert client_for(l1).get_oldest_challengable_game_address(100, L2) is None


def test_oldest_game_window_limits_scan():
    l1 = FakeL1(
        [
            FakeGame(100, invalid_claim()),
            FakeGame(200, invalid_claim()),
            FakeGame(300, valid_claim(300)),
            FakeGame(400, invalid_claim()),
        ]
    )
    assert client_for(l1).get_oldest_challengable_game_address(1, L2) == l1.games[3]


def test_oldest_defensible_game():
    l1 = FakeL1(
        [
            FakeGame(100, invalid_claim(), proposal_status=ProposalStatus.CHALLENGED),
            FakeGame(200, valid_claim(200)),
            FakeGame(300, valid_claim(300), proposal_status=ProposalStatus.CHALLENGED),
        ]
    )
    assert client_for(l1).get_oldest_defensible_game_address(100, L2) == l1.games[2]


def test_get_oldest_game_address_custom_checks():
    l1 = FakeL1([FakeGame(100, valid_claim(100)), FakeGame(200, valid_claim(200))])
    found = client_for(l1).get_oldest_game_address(
        100,
        L2,
        lambda status: status == ProposalStatus.UNCHALLENGED,
        lambda output_root, game_claim: output_root == game_claim,
        "Valid game",
    )
    assert found == l1.games[0]


def _resolved_claimable(l1, game):
    address = l1.add(game)
    game.proposal_status = ProposalStatus.RESOLVED
    game.credits[CLAIMANT] = 1
    l1.finalized.add(address)
    return address


def test_claimable_bond_game_found():
    l1 = FakeL1([FakeGame(100, valid_claim(100))])
    address = _resolved_claimable(l1, FakeGame(200, valid_claim(200)))
    l1.add(FakeGame(300, valid_claim(300)))
    assert client_for(l1).get_oldest_claimable_bond_game_address(1, 100, CLAIMANT) == address


def test_claimable_bond_scan_excludes_latest_game():
    l1 = FakeL1([FakeGame(100, valid_claim(100))])
    _resolved_claimable(l1, FakeGame(200, valid_claim(200)))
    assert client_for(l1).get_oldest_claimable_bond_game_address(1, 100, CLAIMANT) is None


def test_claimable_bond_none_without_games():
    assert client_for(FakeL1()).get_oldest_claimable_bond_game_address(1, 100, CLAIMANT) is None


def test_should_attempt_resolution_first_game():
    l1 = FakeL1([FakeGame(100, valid_claim(100))])
    assert client_for(l1).should_attempt_resolution(0) == (True, l1.games[0])


def test_should_attempt_resolution_depends_on_parent_status():
    parent = FakeGame(100, valid_claim(100))
    l1 = FakeL1([parent, FakeGame(200, valid_claim(200), parent_index=0)])
    client = client_for(l1)
    assert client.should_attempt_resolution(1) == (False, l1.games[1])
    parent.game_status = GameStatus.DEFENDER_WINS
    assert client.should_attempt_resolution(1) == (True, l1.games[1])


def test_try_resolve_skips_game_not_in_progress():
    l1 = FakeL1([FakeGame(100, invalid_claim(), game_status=GameStatus.CHALLENGER_WINS)])
    signer = FakeSigner()
    action = client_for(l1).try_resolve_games(0, Mode.CHALLENGER, signer, l1, L2)
    assert action is Action.SKIPPED
    assert signer.requests == []


def test_try_resolve_skips_wrong_mode():
    l1 = FakeL1(
        [FakeGame(100, invalid_claim(), proposal_status=ProposalStatus.CHALLENGED, deadline=1)]
    )
    signer = FakeSigner()
    assert client_for(l1).try_resolve_games(0, Mode.PROPOSER, signer, l1, L2) is Action.SKIPPED
    assert signer.requests == []


def test_try_resolve_skips_when_deadline_not_passed():
    l1 = FakeL1(
        [
            FakeGame(
                100,
                invalid_claim(),
                proposal_status=ProposalStatus.CHALLENGED,
                deadline=LATEST_TIMESTAMP,
            )
        ]
    )
    signer = FakeSigner()
    assert client_for(l1).try_resolve_games(0, Mode.CHALLENGER, signer, l1, L2) is Action.SKIPPED
    assert signer.requests == []


def test_try_resolve_sends_resolve_transaction():
    l1 = FakeL1(
        [FakeGame(100, invalid_claim(), proposal_status=ProposalStatus.CHALLENGED, deadline=1)]
    )
    signer = FakeSigner()
    assert client_for(l1).try_resolve_games(0, Mode.CHALLENGER, signer, l1, L2) is Action.PERFORMED
    assert len(signer.requests) == 1
    request = signer.requests[0]
    assert request.to == l1.games[0]
    assert request.data == function_selector("resolve()")
    assert request.value == 0


def test_try_resolve_proposer_mode_unchallenged():
    l1 = FakeL1([FakeGame(100, valid_claim(100), deadline=1)])
    signer = FakeSigner()
    assert client_for(l1).try_resolve_games(0, Mode.PROPOSER, signer, l1, L2) is Action.PERFORMED
    assert [r.to for r in signer.requests] == [l1.games[0]]


def test_resolve_games_resolves_window_and_counts():
    l1 = FakeL1(
        [
            FakeGame(100, invalid_claim(), proposal_status=ProposalStatus.CHALLENGED, deadline=1),
            FakeGame(200, invalid_claim(), proposal_status=ProposalStatus.CHALLENGED, deadline=1),
            FakeGame(300, invalid_claim(), proposal_status=ProposalStatus.CHALLENGED, deadline=1),
        ]
    )
    signer = FakeSigner()
    ChallengerGauge.init_all()
    client_for(l1).resolve_games(Mode.CHALLENGER, 100, signer, l1, L2)
    assert [r.to for r in signer.requests] == l1.games[:2]
    assert REGISTRY.value(ChallengerGauge.GAMES_RESOLVED.metric_name) == 2.0


def test_resolve_games_proposer_gauge():
    l1 = FakeL1([FakeGame(100, valid_claim(100), deadline=1), FakeGame(200, valid_claim(200))])
    signer = FakeSigner()
    ProposerGauge.init_all()
    client_for(l1).resolve_games(Mode.PROPOSER, 100, signer, l1, L2)
    assert [r.to for r in signer.requests] == [l1.games[0]]
    assert REGISTRY.value(ProposerGauge.GAMES_RESOLVED.metric_name) == 1.0


def test_resolve_games_stops_when_parent_unresolved():
    parent = FakeGame(100, valid_claim(100))
    l1 = FakeL1(
        [
            parent,
            FakeGame(200, valid_claim(200), parent_index=0, deadline=1),
            FakeGame(300, valid_claim(300), parent_index=1, deadline=1),
            FakeGame(400, valid_claim(400), parent_index=2, deadline=1),
        ]
    )
    signer = FakeSigner()
    client_for(l1).resolve_games(Mode.PROPOSER, 2, signer, l1, L2)
    assert signer.requests == []


def test_resolve_games_continues_after_failure():
    l1 = FakeL1(
        [
            FakeGame(100, valid_claim(100), deadline=1),
            FakeGame(200, valid_claim(200), deadline=1),
            FakeGame(300, valid_claim(300)),
        ]
    )
    signer = FakeSigner(fail_first=True)
    ProposerGauge.init_all()
    client_for(l1).resolve_games(Mode.PROPOSER, 100, signer, l1, L2)
    assert [r.to for r in signer.requests] == l1.games[:2]
    assert REGISTRY.value(ProposerGauge.GAMES_RESOLVED.metric_name) == 1.0


def test_resolve_games_without_games_sends_nothing():
    signer = FakeSigner()
    l1 = FakeL1()
    client_for(l1).resolve_games(Mode.CHALLENGER, 100, signer, l1, L2)
    assert signer.requests == []


@pytest.mark.parametrize("mode", [Mode.PROPOSER, Mode.CHALLENGER])
def test_try_resolve_unknown_index_raises(mode):
    l1 = FakeL1()
    with pytest.raises(IndexError):
        client_for(l1).try_resolve_games(0, mode, FakeSigner(), l1, L2)