"""Integration tests: a game on the default tables through consolidation.

Plays allocation, trading and operating rounds, walks the phases up to the
one that fires consolidation, and checks the successor that comes out of the
consolidation round along with the resumed round sequence.
"""

import pytest

from railmerge.engine import CertificateBundle, GameEngine
from railmerge.models import Holder, RoundKind, Train, default_config, spend

PLAYERS = ["Ada", "Ben", "Cy"]


def finish_and_advance(game):
    game.finish_round()
    return game.advance_round()


def deal(game, party_id, *predecessor_ids):
    for predecessor_id in predecessor_ids:
        enterprise = game.get_enterprise(predecessor_id)
        game.ledger.transfer(CertificateBundle([enterprise.controlling_certificate]), Holder.party(party_id))


@pytest.fixture
def game():
    game = GameEngine(default_config(), player_names=PLAYERS)
    deal(game, "p1", "P1")
    deal(game, "p2", "P2", "P3")
    deal(game, "p3", "P4", "P5", "P6")
    for index, predecessor_id in enumerate(game.config.successor.predecessors):
        enterprise = game.get_enterprise(predecessor_id)
        spend(game.state.bank, 10 * (index + 1), enterprise)
    p2 = game.get_enterprise("P2")
    p2.trains.append(Train(id="2-0", name="2", distance=2, price=80, owner_id="P2"))
    return game


def play_to_consolidation(game):
    """Allocation, trading, then phases 1.2 to 2.2 before the first operating cycle."""
    finish_and_advance(game)
    for _ in range(3):
        game.advance_phase()
    operating = finish_and_advance(game)
    assert operating.description == "Operating Round 1 of 2"
    game.advance_phase()
    assert game.phase.name == "2.3"
    return finish_and_advance(game)


class TestDefaultGame:
    """Consolidation on the default tables."""

    def test_setup(self, game):
        assert all(p.cash == 600 for p in game.state.parties)
        assert game.cert_limit() == 19
        assert game.share_price("BY") == 92
        assert game.share_price("P1") is None

    def test_consolidation_round(self, game):
        predecessor_cash = sum(game.get_enterprise(pid).cash for pid in game.config.successor.predecessors)

        round_ = play_to_consolidation(game)

        assert round_.kind == RoundKind.CONSOLIDATION
        prussian = game.get_enterprise("PR")
        assert game.share_price("PR") == 154
        assert prussian.cash == 400 + predecessor_cash
        assert [t.name for t in prussian.trains] == ["4", "2"]
        assert all(game.get_enterprise(pid).closed for pid in game.config.successor.predecessors)

    def test_tokens_after_consolidation(self, game):
        play_to_consolidation(game)
        locations = [t.location for t in game.get_enterprise("PR").tokens]
        # P2 and P6 both start in Berlin
        assert locations == ["Nuremberg", "Berlin", "Hamburg", "Dortmund", "Cologne", None]
        assert "Preussische Eisenbahn already has a token on Berlin, placing token on charter instead" in game.get_log()

    def test_controlling_owner(self, game):
        play_to_consolidation(game)

        result = game.last_consolidation
        prussian = game.get_enterprise("PR")
        assert result.priority == ["p1", "p2", "p3"]
        assert result.controlling_owner == "p3"
        assert prussian.controlling_certificate.holder == Holder.party("p3")
        percents = game.ledger.party_percentages(prussian)
        assert percents == {"p1": 10, "p2": 20, "p3": 30}
        # Unparred minors settle no cash
        assert all(p.cash == 600 and p.debt == 0 for p in game.state.parties)

    def test_double_certificates_count_twice(self, game):
        play_to_consolidation(game)
        # p2 holds two ordinary 10% units of PR and nothing else
        assert game.ledger.certificate_count("p2") == 4

    def test_sequence_resumes(self, game):
        play_to_consolidation(game)
        resumed = game.advance_round()
        assert resumed.description == "Operating Round 2 of 2"
        assert finish_and_advance(game).kind == RoundKind.TRADING
        assert game.state.turn == 2

    def test_conservation_everywhere(self, game):
        play_to_consolidation(game)
        game.ledger.validate_all()
        game.assets.validate_tokens(game.get_enterprise("PR"))

    def test_snapshot_mid_sequence(self, game):
        play_to_consolidation(game)
        restored = GameEngine.restore(game.config, game.snapshot())
        assert restored.advance_round().description == "Operating Round 2 of 2"
        assert restored.get_enterprise("PR").owner_id == "p3"
