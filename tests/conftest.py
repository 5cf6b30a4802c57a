"""Shared pytest fixtures and markers for all tests."""

import pytest

from railmerge.engine import CertificateBundle, GameEngine
from railmerge.models import (
    EnterpriseSpec,
    GameConfig,
    Holder,
    PhaseSpec,
    SuccessorSpec,
    TrainSpec,
)

PLAYERS = ["Ada", "Ben", "Cy"]

# Reserved successor cell is 70; par cells at 84, 80, 88 and 60.
TEST_MARKET = [
    ["100", "110", "120", "130"],
    ["84p", "90", "100", "110"],
    ["76", "80p", "88p", "96"],
    ["60p", "70r", "78", "86"],
    ["50", "60", "70"],
]

TEST_ENTERPRISES = [
    EnterpriseSpec(id="A1", name="Alpha Line", kind="major", shares=[20] + [10] * 8, par_price=84, tokens=2, home="Alpha"),
    EnterpriseSpec(id="B1", name="Beta Line", kind="minor", shares=[100], home="Beta"),
    EnterpriseSpec(id="C1", name="Gamma Line", kind="minor", shares=[100], home="Alpha"),
    EnterpriseSpec(id="D1", name="Delta Line", kind="minor", shares=[100], par_price=60, home="Delta"),
    EnterpriseSpec(id="M1", name="Mu Line", kind="major", shares=[20] + [10] * 8, par_price=80, tokens=2, home="Mu"),
]


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


def make_config(
    predecessors=("A1", "B1", "C1"),
    successor_shares=None,
    market=None,
    operating_rounds=(2, 2, 3),
    bank_cash=12_000,
    sell_movement="down_block",
    sell_steps_per_block=1,
) -> GameConfig:
    """Small game tables with three phases; the second fires consolidation."""
    events = [[], ["consolidation"], ["close_companies"]]
    phases = [
        PhaseSpec(name=str(i + 1), on=None, operating_rounds=k, events=events[i])
        for i, k in enumerate(operating_rounds)
    ]
    return GameConfig(
        name="test tables",
        bank_cash=bank_cash,
        market=market or TEST_MARKET,
        sell_movement=sell_movement,
        sell_steps_per_block=sell_steps_per_block,
        phases=phases,
        trains=[
            TrainSpec(name="2", distance=2, price=80, rusts_on="4"),
            TrainSpec(name="4", distance=4, price=360),
        ],
        enterprises=TEST_ENTERPRISES,
        successor=SuccessorSpec(
            id="SU",
            name="Union Line",
            shares=successor_shares or [10] + [10] * 4 + [5] * 10,
            predecessors=list(predecessors),
            starting_cash=400,
            starting_train="4",
            token_price=100,
        ),
        cert_limit={2: 20, 3: 16},
        starting_cash={2: 500, 3: 400},
    )


@pytest.fixture
def config_factory():
    """Provide the test-table builder so tests can override single settings."""
    return make_config


@pytest.fixture
def config():
    """Provide the default test tables."""
    return make_config()


@pytest.fixture
def engine(config):
    """Provide a freshly set up three-player game on the test tables."""
    return GameEngine(config, player_names=PLAYERS)


@pytest.fixture
def engine_factory():
    """Provide a builder for games on custom tables."""

    def _build(config=None, players=None):
        return GameEngine(config or make_config(), player_names=players or PLAYERS)

    return _build


@pytest.fixture
def give():
    """Move certificates, by issue index, from wherever they are to a party.

    Control side effects apply unless ``allow`` is False.
    """

    def _give(engine, party_id, enterprise_id, *indices, allow=True):
        enterprise = engine.state.enterprise(enterprise_id)
        certs = [enterprise.certificates[i] for i in indices]
        engine.ledger.transfer(CertificateBundle(certs), Holder.party(party_id), allow_controlling_owner_change=allow)

    return _give


def finish_and_advance(engine):
    """Complete the active round and move on; returns the new round."""
    engine.finish_round()
    return engine.advance_round()


@pytest.fixture
def to_operating():
    """Drive a fresh game from allocation into its first operating round."""

    def _drive(engine):
        finish_and_advance(engine)
        return finish_and_advance(engine)

    return _drive


@pytest.fixture
def step():
    """Provide finish_and_advance as a fixture."""
    return finish_and_advance
