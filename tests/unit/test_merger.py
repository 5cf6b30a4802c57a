"""Unit tests for railmerge.engine.merger.

Tests cover:
- Opening the successor (reserved cell, starting cash and train)
- Cash, token and train migration, including cash closure
- Certificate exchange and settlement: bank payouts, payments and debt
- Controlling-owner determination, tie-breaks and both corrective swaps
- Precondition failures, which must leave the state untouched

The test tables use a successor with a 10% controlling certificate, four
double 10% units and ten 5% units, parred on a reserved cell priced 70.
"""

import pytest

from railmerge.errors import InvariantViolation
from railmerge.models.state import Holder, RoundKind, Train, spend


def held(engine, party_id, enterprise_id="SU"):
    enterprise = engine.get_enterprise(enterprise_id)
    return [c.id for c in engine.ledger.certificates_of(Holder.party(party_id), enterprise)]


def percent(engine, party_id, enterprise_id="SU"):
    return engine.ledger.percent_of(Holder.party(party_id), engine.get_enterprise(enterprise_id))


class TestOpenSuccessor:
    """The successor as it comes out of the protocol."""

    def test_successor_on_reserved_cell_with_cash_and_train(self, engine):
        bank_before = engine.state.bank.cash
        engine.merger.run()

        successor = engine.get_enterprise("SU")
        assert engine.share_price("SU") == 70
        assert successor.opened and successor.floated
        assert successor.cash == 400
        assert engine.state.bank.cash == bank_before - 400
        assert [t.id for t in successor.trains] == ["4-SU"]
        assert "Union Line starts with 400M and a 4 train" in engine.get_log()
        assert engine.state.consolidated

    def test_predecessors_closed(self, engine):
        engine.merger.run()
        for predecessor_id in ("A1", "B1", "C1"):
            corp = engine.get_enterprise(predecessor_id)
            assert corp.closed
            assert corp.tokens == [] and corp.trains == [] and corp.cash == 0
            assert corp.cell is None
        assert [e.id for e in engine.state.active_enterprises()] == ["D1", "M1", "SU"]

    def test_log_order(self, engine):
        engine.merger.run()
        log = engine.get_log()
        forms = log.index("-- Event: Union Line forms --")
        assert log.index("Alpha Line merging into Union Line") > forms
        assert log.index("Beta Line merging into Union Line") > log.index("Alpha Line merging into Union Line")


class TestAssets:
    """Cash, tokens and trains follow the predecessors into the successor."""

    def test_cash_closure(self, engine):
        spend(engine.state.bank, 150, engine.get_enterprise("A1"))
        spend(engine.state.bank, 30, engine.get_enterprise("C1"))

        result = engine.merger.run()

        assert result.cash_from_predecessors == 180
        assert engine.get_enterprise("SU").cash == 400 + 180
        assert "Union Line receives 150M" in engine.get_log()

    def test_tokens_sorted_without_duplicates(self, engine):
        engine.merger.run()
        tokens = engine.get_enterprise("SU").tokens
        # A1: Alpha + spare, B1: Beta, C1: Alpha (conflict, becomes spare)
        assert [t.location for t in tokens] == ["Alpha", "Beta", None, None]
        assert all(t.price == 100 for t in tokens)
        engine.assets.validate_tokens(engine.get_enterprise("SU"))

    def test_trains_follow_starting_train(self, engine):
        b1 = engine.get_enterprise("B1")
        b1.trains.append(Train(id="2-0", name="2", distance=2, price=80, owner_id="B1"))
        engine.merger.run()
        trains = engine.get_enterprise("SU").trains
        assert [t.id for t in trains] == ["4-SU", "2-0"]
        assert trains[1].owner_id == "SU"


class TestExchange:
    """Certificate exchange and cash settlement."""

    def test_controlling_certificate_pays_difference(self, engine, give):
        # Par 84, successor at 70: (84 - 70) * 10 / 5 = 28
        give(engine, "p1", "A1", 0)
        result = engine.merger.run()

        assert engine.get_party("p1").cash == 400 + 28
        assert held(engine, "p1") == ["SU_0"]
        assert "Ada receives 28M and 10% of Union Line" in engine.get_log()
        record = result.exchanges[0]
        assert (record.predecessor_id, record.holder, record.percent, record.cash) == ("A1", Holder.party("p1"), 10, 28)

    def test_ordinary_certificates_become_fives(self, engine, give):
        give(engine, "p2", "A1", 1, 2, 3)
        result = engine.merger.run()

        record = next(r for r in result.exchanges if r.holder == Holder.party("p2"))
        assert (record.percent, record.cash) == (15, 42)
        assert engine.get_party("p2").cash == 400 + 42
        assert percent(engine, "p2") == 15

    def test_unparred_predecessor_settles_nothing(self, engine, give):
        give(engine, "p3", "B1", 0)
        engine.merger.run()
        assert engine.get_party("p3").cash == 400
        assert "Cy receives 10% of Union Line" in engine.get_log()

    def test_enterprise_holdings_go_to_market(self, engine):
        a1 = engine.get_enterprise("A1")
        a1.certificates[1].holder = Holder.enterprise("M1")
        bank_before = engine.state.bank.cash

        engine.merger.run()

        successor = engine.get_enterprise("SU")
        # Unsold A1 certificates and the one M1 held all land in the pool
        assert engine.ledger.percent_of(Holder.market(), successor) == 10 + 8 * 5 + 10 + 10
        assert engine.ledger.percent_of(Holder.enterprise("M1"), successor) == 0
        assert engine.get_enterprise("M1").cash == 0
        assert engine.state.bank.cash == bank_before - 400

    def test_predecessor_holding_in_other_enterprise_goes_to_market(self, engine):
        m1 = engine.get_enterprise("M1")
        m1.certificates[2].holder = Holder.enterprise("B1")
        engine.merger.run()
        assert m1.certificates[2].holder == Holder.market()

    def test_shortfall_becomes_debt(self, engine_factory, config_factory, give):
        # Par 60, successor at 70: (60 - 70) * 10 / 5 = -20 against a balance of 5
        engine = engine_factory(config_factory(predecessors=["D1"]))
        give(engine, "p1", "D1", 0)
        party = engine.get_party("p1")
        spend(party, party.cash - 5, engine.state.bank)
        bank_before = engine.state.bank.cash

        result = engine.merger.run()

        assert party.cash == -15
        assert party.debt == 15
        assert engine.state.bank.cash == bank_before - 400 + 20
        assert result.exchanges[0].cash == -20
        assert result.exchanges[0].debt == 15
        log = engine.get_log()
        assert "Ada pays 20M and receives 10% of Union Line" in log
        assert "Ada takes 15M of debt to complete payment" in log

    def test_payment_within_means_takes_no_debt(self, engine_factory, config_factory, give):
        engine = engine_factory(config_factory(predecessors=["D1"]))
        give(engine, "p2", "D1", 0)
        engine.merger.run()
        assert engine.get_party("p2").cash == 380
        assert engine.get_party("p2").debt == 0

    def test_conservation_after_merge(self, engine, give):
        give(engine, "p1", "A1", 0)
        give(engine, "p2", "A1", 1, 2)
        give(engine, "p3", "B1", 0)
        engine.merger.run()
        engine.ledger.validate_all()
        for enterprise in engine.state.enterprises.values():
            assert sum(c.percent for c in enterprise.certificates) == 100


class TestControllingOwner:
    """Controlling-owner determination and corrective swaps."""

    def test_no_owner_below_ten_percent(self, engine, give):
        give(engine, "p1", "A1", 1)
        result = engine.merger.run()
        assert result.controlling_owner is None
        assert engine.get_enterprise("SU").owner_id is None
        assert "Union Line has no president" in engine.get_log()

    def test_largest_holder_already_holding_controlling_certificate(self, engine, give):
        # Owners A, A, B with priority [A, B]
        give(engine, "p1", "A1", 0)
        give(engine, "p1", "B1", 0)
        give(engine, "p2", "C1", 0)

        result = engine.merger.run()

        assert result.priority == ["p1", "p2"]
        assert result.controlling_owner == "p1"
        assert held(engine, "p1") == ["SU_0", "SU_1"]
        assert held(engine, "p2") == ["SU_2"]
        assert engine.get_log()[-1] == "Ada becomes the president of Union Line"

    def test_controlling_certificate_swapped_to_owner(self, engine, give):
        give(engine, "p2", "A1", 0)
        give(engine, "p1", "B1", 0)
        give(engine, "p1", "C1", 0)

        result = engine.merger.run()

        assert result.controlling_owner == "p1"
        successor = engine.get_enterprise("SU")
        assert successor.owner_id == "p1"
        assert successor.controlling_certificate.holder == Holder.party("p1")
        assert held(engine, "p1") == ["SU_0", "SU_2"]
        assert held(engine, "p2") == ["SU_1"]
        assert percent(engine, "p1") == 20
        assert percent(engine, "p2") == 10
        assert (
            "Ada swaps a 10% certificate of Union Line for the president's certificate with Ben" in engine.get_log()
        )

    def test_tie_broken_by_priority_not_seat(self, engine, give):
        give(engine, "p2", "A1", 0)
        give(engine, "p1", "B1", 0)

        result = engine.merger.run()

        assert result.priority == ["p2", "p1"]
        assert result.controlling_owner == "p2"

    def test_tie_with_party_outside_priority_list(self, engine, give):
        # p3 holds no controlling certificate, so it sorts after p1
        give(engine, "p3", "A1", 1, 2)
        give(engine, "p1", "B1", 0)
        result = engine.merger.run()
        assert percent(engine, "p3") == percent(engine, "p1") == 10
        assert result.controlling_owner == "p1"

    def test_qualifying_certificate_from_lowest_priority_party(self, engine, give):
        give(engine, "p2", "A1", 1, 2, 3, 4, 5, 6)
        give(engine, "p1", "A1", 0)
        give(engine, "p3", "B1", 0)
        give(engine, "p3", "C1", 0)

        result = engine.merger.run()

        assert result.priority == ["p1", "p3"]
        assert result.controlling_owner == "p2"
        assert held(engine, "p2") == ["SU_0", "SU_7", "SU_8", "SU_9", "SU_10"]
        assert held(engine, "p3") == ["SU_2", "SU_5", "SU_6"]
        assert held(engine, "p1") == ["SU_1"]
        assert [percent(engine, p) for p in ("p1", "p2", "p3")] == [10, 30, 20]
        assert engine.ledger.certificate_count("p3") == 4
        log = engine.get_log()
        assert "Ben exchanges two 5% certificates for a 10% certificate of Union Line with Cy" in log
        engine.ledger.validate(engine.get_enterprise("SU"))

    def test_qualifying_certificate_prefers_market(self, engine, give):
        # B1 is unowned, so its 10% exchange lands in the market pool
        give(engine, "p2", "A1", 1, 2, 3, 4)
        give(engine, "p3", "C1", 0)

        result = engine.merger.run()

        assert result.controlling_owner == "p2"
        assert percent(engine, "p2") == 20
        assert any(c.percent == 10 for c in engine.ledger.certificates_of(Holder.party("p2"), engine.get_enterprise("SU")))
        assert held(engine, "p3") == ["SU_2"]
        assert "Ben exchanges two 5% certificates for a 10% certificate of Union Line with Market" in engine.get_log()

    def test_swaps_leave_other_parties_untouched(self, engine, give):
        give(engine, "p2", "A1", 1, 2, 3, 4, 5, 6)
        give(engine, "p1", "A1", 0)
        give(engine, "p3", "B1", 0)
        give(engine, "p3", "C1", 0)
        before = {}
        original_determine = engine.merger._determine_controlling_owner

        def snapshot_then_determine(successor, priority):
            before.update(engine.ledger.party_percentages(successor))
            return original_determine(successor, priority)

        engine.merger._determine_controlling_owner = snapshot_then_determine
        engine.merger.run()

        assert engine.ledger.party_percentages(engine.get_enterprise("SU")) == before


class TestPreconditions:
    """Failures are detected before anything changes."""

    def test_second_run_raises(self, engine):
        engine.merger.run()
        with pytest.raises(InvariantViolation, match="already formed"):
            engine.merger.run()

    def test_negative_predecessor_cash_raises(self, engine):
        engine.get_enterprise("B1").cash = -1
        with pytest.raises(InvariantViolation, match="negative cash"):
            engine.merger.run()
        assert "SU" not in engine.state.enterprises

    def test_missing_reserved_cell_raises(self, engine_factory, config_factory):
        market = [["100", "84p", "80p"], ["60p", "70"]]
        engine = engine_factory(config_factory(market=market))
        with pytest.raises(InvariantViolation, match="no reserved par cell"):
            engine.merger.run()
        assert "SU" not in engine.state.enterprises

    def test_insufficient_certificate_supply_raises(self, engine_factory, config_factory):
        engine = engine_factory(config_factory(successor_shares=[10] * 10))
        bank_before = engine.state.bank.cash
        with pytest.raises(InvariantViolation, match="cannot cover the exchange"):
            engine.merger.run()
        assert "SU" not in engine.state.enterprises
        assert engine.state.bank.cash == bank_before
        assert not engine.get_enterprise("A1").closed

    def test_round_kind_unchanged_by_direct_run(self, engine):
        engine.merger.run()
        assert engine.current_round.kind == RoundKind.ALLOCATION
