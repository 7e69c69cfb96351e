# tests/conftest.py
import pathlib
import sys

import pytest

# Repo root on sys.path so `import tokengate` works without installing.
_REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from tokengate.chain.ledger import MockLedger  # noqa: E402
from tokengate.config import GateConfig  # noqa: E402
from tokengate.context import GateContext  # noqa: E402


@pytest.fixture
def config() -> GateConfig:
    return GateConfig(
        contract_address="0x" + "ab" * 20,
        lit_chain="sepolia",
        chain_id=11155111,
        receipt_timeout=1.0,
        event_chunk_size=500,
        event_lookback=2000,
    )


@pytest.fixture
def ctx(config: GateConfig) -> GateContext:
    return GateContext.from_config(config)


@pytest.fixture
def ledger() -> MockLedger:
    return MockLedger(chain_id=11155111, block_number=1000)
