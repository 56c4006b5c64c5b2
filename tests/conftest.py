import os
import pathlib
import sys
from dataclasses import dataclass

import pytest


# Ensure repo root is on PYTHONPATH for direct package imports (e.g. `import zkpsbt`).
_REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from eth_utils import to_checksum_address  # noqa: E402

from zkpsbt.circuit import CircuitInputs, CreditScoreCircuit  # noqa: E402
from zkpsbt.commitment import Profile, compute_commitment  # noqa: E402
from zkpsbt.config import get_config_manager  # noqa: E402
from zkpsbt.ecies import address_from_public_key, public_key_from_private  # noqa: E402
from zkpsbt.events import EventBus  # noqa: E402
from zkpsbt.groth16 import setup  # noqa: E402
from zkpsbt.ledger import AttestationLedger  # noqa: E402
from zkpsbt.prover import ProofGenerator  # noqa: E402


# Wallet and profile from the reference deployment scenario
OWNER_PRIVATE_KEY = bytes.fromhex("41c5ab8f659237772a24848aefb3700202ec730c091b3c53affe3f9ebedbc3c9")
CREDIT_SCORE = 45
INCOME = 3100
REPORT_DATE_MS = 1675196581804  # 2023-01-31T20:23:01.804Z
THRESHOLD = 40
FORGED_CREDIT_SCORE = 55

AUTHORITY = to_checksum_address("0x" + "a1" * 20)
STRANGER = to_checksum_address("0x" + "b2" * 20)


def _env_flag(name: str) -> bool:
    v = (os.environ.get(name) or '').strip().lower()
    return v in {'1', 'true', 'yes', 'y', 'on'}


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "slow: slow correctness tests (skipped unless ZKPSBT_RUN_SLOW=1)",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list) -> None:
    run_slow = _env_flag('ZKPSBT_RUN_SLOW')

    for item in items:
        if 'slow' in item.keywords and not run_slow:
            item.add_marker(pytest.mark.skip(reason='slow tests skipped; set ZKPSBT_RUN_SLOW=1 to enable'))


@dataclass(frozen=True)
class Wallet:
    private_key: bytes
    public_key: bytes
    address: str


def make_wallet(private_key: bytes) -> Wallet:
    public_key = public_key_from_private(private_key)
    return Wallet(private_key, public_key, address_from_public_key(public_key))


@pytest.fixture(autouse=True)
def _reset_config():
    yield
    get_config_manager().reset()


@pytest.fixture(scope="session")
def owner() -> Wallet:
    return make_wallet(OWNER_PRIVATE_KEY)


@pytest.fixture(scope="session")
def other_wallet() -> Wallet:
    return make_wallet(bytes.fromhex("7f" * 32))


@pytest.fixture(scope="session")
def scenario_profile(owner) -> Profile:
    return Profile(owner.address, CREDIT_SCORE, INCOME, REPORT_DATE_MS)


@pytest.fixture(scope="session")
def scenario_commitment(scenario_profile) -> int:
    return compute_commitment(scenario_profile)


@pytest.fixture(scope="session")
def circuit() -> CreditScoreCircuit:
    return CreditScoreCircuit(bits=32)


@pytest.fixture(scope="session")
def groth16_keys(circuit):
    """(ProvingKey, VerificationKey) for the credit-score circuit. Setup runs once."""
    return setup(circuit.shape())


@pytest.fixture(scope="session")
def scenario_inputs(scenario_profile, scenario_commitment) -> CircuitInputs:
    return CircuitInputs.from_profile(scenario_profile, scenario_commitment, THRESHOLD)


@pytest.fixture(scope="session")
def scenario_bundle(groth16_keys, circuit, scenario_inputs):
    """Proof that the scenario profile clears the scenario threshold."""
    pk, _ = groth16_keys
    return ProofGenerator(pk, circuit).generate(scenario_inputs)


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def ledger(event_bus) -> AttestationLedger:
    return AttestationLedger(AUTHORITY, event_bus=event_bus)
