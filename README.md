# opfaultproof

A client for OP Succinct fault dispute games. It talks to an L1 node and an
L2 node over JSON-RPC. With it you can:

- find games whose claimed output root does not match the L2 chain, and
  challenge them;
- resolve challenged games once their deadline has passed;
- claim bonds from games that are resolved and finalized;
- export Prometheus-style gauges that count what it has done.

The output root of an L2 block is computed locally from the block header and
the storage root of the L2-to-L1 message passer
(`0x4200000000000000000000000000000000000016`), using `eth_getBlockByNumber`
and `eth_getProof`. The `optimism_outputAtBlock` RPC method is not used.

## Installation

```
pip install opfaultproof
```

For running the test suite:

```
pip install "opfaultproof[test]"
pytest
```

## Running the challenger

```
opfaultproof-challenger --env-file .env.challenger
```

The challenger loads the given env file (default `.env.challenger`) with
python-dotenv. Variables that are already set in the environment are kept.
It then reads its settings from the environment. If a setting is missing or
malformed, it logs the error and exits with status 1. Otherwise it serves
metrics and loops forever, once every `FETCH_INTERVAL` seconds. On each tick
it:

1. challenges the oldest unchallenged game in the recent window whose output
   root is wrong and whose deadline has not passed, if there is one;
2. resolves challenged, in-progress games whose deadline has passed;
3. claims credit from the oldest resolved and finalized game that still holds
   credit for the challenger.

A failure in any step is logged as a warning and counted in that step's error
gauge. It does not stop the loop.

### Settings

| Variable | Required | Default |
|---|---|---|
| `L1_RPC` | yes | |
| `L2_RPC` | yes | |
| `FACTORY_ADDRESS` | yes | |
| `GAME_TYPE` | yes | |
| `SIGNER_ADDRESS` | yes | |
| `SIGNER_URL` | no | the `L1_RPC` endpoint |
| `FETCH_INTERVAL` (seconds) | no | `30` |
| `MAX_GAMES_TO_CHECK_FOR_CHALLENGE` | no | `100` |
| `ENABLE_GAME_RESOLUTION` | no | `true` |
| `MAX_GAMES_TO_CHECK_FOR_RESOLUTION` | no | `100` |
| `MAX_GAMES_TO_CHECK_FOR_BOND_CLAIMING` | no | `100` |
| `CHALLENGER_METRICS_PORT` | no | `9001` |
| `MALICIOUS_CHALLENGE_PERCENTAGE` | no | `0.0` |
| `LOG_LEVEL` | no | `info` |

Boolean settings must be exactly `true` or `false`. `ENABLE_GAME_RESOLUTION`
is validated and stored in `ChallengerConfig`. The challenger attempts
resolution on every tick whatever its value.

`MALICIOUS_CHALLENGE_PERCENTAGE` exists only for testing the defence side.
When it is above zero and no invalid game was found, the oldest valid
unchallenged game is also challenged. This happens when a uniform draw in
`[0, 100]` is at most the percentage. Leave it at `0.0` in production.

### Signing

Transactions are sent with `eth_sendTransaction` from `SIGNER_ADDRESS`. They
go to `SIGNER_URL` if it is set, and to the L1 node otherwise, so the endpoint
must hold or proxy the account's key. `NodeSigner` then polls the L1 node for
the receipt. It waits for 3 confirmations. It raises `TransactionFailed` if
the transaction reverts or is not confirmed within 60 seconds.

### Metrics

`init_metrics(port)` serves every registered gauge in the Prometheus text
format. It answers any GET path on `0.0.0.0:<port>` from a background thread.
The challenger gauges (`ChallengerGauge`) count games challenged, resolved
and bonds claimed. They also count errors in challenging, resolution and bond
claiming.

### Logging

`setup_logging()` reads the `LOG_LEVEL` environment variable. Its value is a
comma-separated list of directives. Each directive is either a level
(`trace`, `debug`, `info`, `warn`, `warning`, `error`, `off`) for the root
logger, or `target=level` for a named logger. `::` in a target is read as
`.`. An unset or unparsable value gives `INFO`.

## Library use

The building blocks can also be used directly:

```python
from opfaultproof.config import ChallengerConfig
from opfaultproof.rpc import JsonRpcProvider
from opfaultproof.contract import DisputeGameFactory
from opfaultproof.factory import FactoryClient
from opfaultproof.l2 import compute_output_root_at_block

config = ChallengerConfig.from_env()
l1 = JsonRpcProvider(config.l1_rpc)
l2 = JsonRpcProvider(config.l2_rpc)

factory = FactoryClient(DisputeGameFactory(config.factory_address, l1))

latest = factory.fetch_latest_game_index()
proposal = factory.get_latest_valid_proposal(l2)  # (l2_block_number, game_index) or None
suspect = factory.get_oldest_challengable_game_address(
    config.max_games_to_check_for_challenge, l2
)
```

Modules:

- `opfaultproof.abi`: `keccak256`, `function_selector`, `encode_call`, and
  encoding and decoding of static ABI words (`uint`, `address`, `bytes32`).
- `opfaultproof.rpc`: `JsonRpcProvider`, a JSON-RPC 2.0 client over HTTP,
  with `BlockHeader` and `RpcError`.
- `opfaultproof.config`: `ProposerConfig` and `ChallengerConfig`, read from
  the environment, with `ConfigError`.
- `opfaultproof.contract`: call wrappers for `DisputeGameFactory`,
  `OPSuccinctFaultDisputeGame` and `AnchorStateRegistry`, together with the
  `GameStatus`, `ProposalStatus`, `ClaimData`, `L2Output`, `GameAtIndex` and
  `TransactionRequest` types.
- `opfaultproof.l2`: `get_l2_block_by_number`, `get_l2_storage_root`,
  `compute_output_root_at_block`.
- `opfaultproof.signer`: `NodeSigner` and `TransactionFailed`.
- `opfaultproof.factory`: `FactoryClient`, with the game scanning, resolution
  and bond-claiming logic, and the `Mode` and `Action` enums.
- `opfaultproof.metrics`: `MetricsRegistry`, `ProposerGauge`,
  `ChallengerGauge` and `init_metrics`.
- `opfaultproof.logsetup`: `setup_logging`.
- `opfaultproof.challenger`: the `Challenger` service and its `main`
  command. `run_once()` performs a single tick, and `run(max_iterations)`
  loops.

## What this package does not do

- There is no proposer command. `ProposerConfig` and `ProposerGauge` are
  provided, and `FactoryClient` can resolve games in `Mode.PROPOSER`. Nothing
  here creates new games or produces and submits proofs to defend them.
- There is no local key signing. Transactions are signed by the node or
  remote signer behind `eth_sendTransaction`.