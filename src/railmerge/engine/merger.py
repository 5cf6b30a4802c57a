"""Consolidation protocol for railmerge.

When the consolidation round runs, a fixed, ordered list of predecessor
enterprises folds into one successor created on the spot:

1. OPEN SUCCESSOR - reserved par cell, starting cash and train
2. FOR EACH PREDECESSOR (priority order):
   a. record its controlling owner in the priority list
   b. move its cash to the successor
   c. migrate its tokens (AssetTransferResolver)
   d. migrate its trains
   e. exchange its certificates for successor certificates, settling cash
   f. close it quietly
3. TOKEN REORDER - bound tokens before spare ones
4. CONTROLLING OWNER - most-held party, ties broken by the priority list,
   followed by two corrective certificate swaps

There is no rollback. Everything that could fail is checked before the step
that mutates state, and a failed check raises InvariantViolation.

Cash settlement per exchanged bundle:
    cash_per_unit = par_price(predecessor) - price(successor)   (0 if never parred)
    cash = cash_per_unit * bundle_percent / 5
Positive cash is paid by the bank. Negative cash is paid to the bank; a party
that cannot cover it keeps a negative balance and takes the shortfall as debt.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from railmerge.engine.assets import AssetTransferResolver
from railmerge.engine.ledger import CertificateBundle, OwnershipLedger
from railmerge.engine.market import CellType, ValuationCell, ValuationGrid
from railmerge.engine.registry import EnterpriseRegistry
from railmerge.errors import InvariantViolation
from railmerge.models.config import GameConfig
from railmerge.models.state import Certificate, Enterprise, GameState, Holder, Train, spend

logger = logging.getLogger(__name__)

CONTROLLING_EXCHANGE_PERCENT = 10
ORDINARY_EXCHANGE_PERCENT = 5


@dataclass
class ExchangeRecord:
    """One holder's certificate exchange for one predecessor.

    Attributes:
        predecessor_id: Enterprise whose certificates were exchanged
        holder: Who received the successor certificates
        percent: Successor percentage received
        cash: Settlement from the holder's point of view (negative = paid)
        debt: Debt taken on to complete the payment
    """

    predecessor_id: str
    holder: Holder
    percent: int
    cash: int
    debt: int = 0


@dataclass
class ConsolidationResult:
    """Outcome of a consolidation round."""

    successor_id: str
    controlling_owner: str | None
    priority: list[str] = field(default_factory=list)
    exchanges: list[ExchangeRecord] = field(default_factory=list)
    cash_from_predecessors: int = 0


class MergerCoordinator:
    """Runs the one-shot consolidation of the configured predecessors."""

    def __init__(
        self,
        state: GameState,
        config: GameConfig,
        grid: ValuationGrid,
        ledger: OwnershipLedger,
        registry: EnterpriseRegistry,
        assets: AssetTransferResolver,
    ):
        self.state = state
        self.config = config
        self.grid = grid
        self.ledger = ledger
        self.registry = registry
        self.assets = assets

    def run(self) -> ConsolidationResult:
        """Execute the full protocol.

        Raises:
            InvariantViolation: If a precondition fails or an accounting
                invariant breaks part way through
        """
        spec = self.config.successor
        predecessors = [self.state.enterprise(pid) for pid in spec.predecessors]
        predecessors = [corp for corp in predecessors if not corp.closed]
        cell = self._check_preconditions(predecessors)

        fmt = self.config.format_currency
        self.state.log.append(f"-- Event: {spec.name or spec.id} forms --")

        successor = self._open_successor(cell)
        result = ConsolidationResult(successor_id=successor.id, controlling_owner=None)

        for corp in predecessors:
            self.state.log.append(f"{corp.name} merging into {successor.name}")
            if corp.owner_id is not None and corp.owner_id not in result.priority:
                result.priority.append(corp.owner_id)

            if corp.cash > 0:
                self.state.log.append(f"{successor.name} receives {fmt(corp.cash)}")
                result.cash_from_predecessors += corp.cash
                spend(corp, corp.cash, successor)

            self.assets.migrate_tokens(corp, successor, spec.token_price)
            self.assets.migrate_trains(corp, successor)
            result.exchanges.extend(self._exchange_certificates(corp, successor))
            self.registry.close(corp, quiet=True)
            self.ledger.validate(corp)

        self.assets.sort_tokens(successor)
        self.assets.validate_tokens(successor)

        result.controlling_owner = self._determine_controlling_owner(successor, result.priority)
        self.ledger.validate(successor)
        self.state.consolidated = True
        logger.info(f"{successor.id} formed from {[c.id for c in predecessors]}, owner={result.controlling_owner}")
        return result

    # =========================================================================
    # Setup
    # =========================================================================

    def _check_preconditions(self, predecessors: list[Enterprise]) -> ValuationCell:
        spec = self.config.successor
        if self.state.consolidated or spec.id in self.state.enterprises:
            raise InvariantViolation(f"{spec.id} has already formed")

        reserved = self.grid.cells_of_type(CellType.RESERVED_PAR)
        if not reserved:
            raise InvariantViolation("the valuation grid has no reserved par cell for the successor")

        for corp in predecessors:
            if not corp.opened:
                raise InvariantViolation(f"predecessor {corp.id} was never opened")
            if corp.cash < 0:
                raise InvariantViolation(f"predecessor {corp.id} carries negative cash")

        wanted_tens = sum(1 for corp in predecessors for cert in corp.certificates if cert.controlling)
        wanted_fives = sum(1 for corp in predecessors for cert in corp.certificates if not cert.controlling)
        have_tens = spec.shares.count(CONTROLLING_EXCHANGE_PERCENT)
        have_fives = spec.shares.count(ORDINARY_EXCHANGE_PERCENT)
        if wanted_tens > have_tens or wanted_fives > have_fives:
            raise InvariantViolation(
                f"{spec.id} cannot cover the exchange: needs {wanted_tens}x10% and {wanted_fives}x5%, "
                f"has {have_tens}x10% and {have_fives}x5%"
            )
        return reserved[0]

    def _open_successor(self, cell: ValuationCell) -> Enterprise:
        spec = self.config.successor
        successor = self.registry.create_successor(spec)
        self.registry.open(successor, spec.shares, double_certificates=spec.double_certificates)
        self.registry.set_par(successor, cell)
        self.registry.float_enterprise(successor)

        spend(self.state.bank, spec.starting_cash, successor)
        message = f"{successor.name} starts with {self.config.format_currency(spec.starting_cash)}"
        if spec.starting_train is not None:
            train_spec = self.config.train_spec(spec.starting_train)
            successor.trains.append(
                Train(
                    id=f"{train_spec.name}-{successor.id}",
                    name=train_spec.name,
                    distance=train_spec.distance,
                    price=train_spec.price,
                    owner_id=successor.id,
                )
            )
            message += f" and a {train_spec.name} train"
        self.state.log.append(message)
        return successor

    # =========================================================================
    # Certificate exchange
    # =========================================================================

    def _exchange_certificates(self, predecessor: Enterprise, successor: Enterprise) -> list[ExchangeRecord]:
        """Swap every predecessor certificate for a successor certificate.

        Controlling certificates become 10% units, all others 5% units.
        Successor certificates owed to an enterprise go to the market pool.
        """
        records = []
        for holder in self.ledger.holders_of(predecessor):
            pool = list(successor.unissued)
            shares: list[Certificate] = []
            for corp_share in self.ledger.certificates_of(holder, predecessor):
                percent = CONTROLLING_EXCHANGE_PERCENT if corp_share.controlling else ORDINARY_EXCHANGE_PERCENT
                share = next((s for s in pool if s.percent == percent), None)
                if share is None:
                    raise InvariantViolation(f"{successor.id} has no unissued {percent}% certificate left")
                pool.remove(share)
                shares.append(share)
            if not shares:
                continue

            recipient = Holder.market() if holder.is_enterprise else holder
            bundle = CertificateBundle(shares)
            self.ledger.transfer(bundle, recipient, allow_controlling_owner_change=False)

            cash_per_unit = 0
            if predecessor.had_par:
                cash_per_unit = self.grid.price(predecessor.par_cell) - self.grid.price(successor.cell)
            cash = cash_per_unit * bundle.percent // ORDINARY_EXCHANGE_PERCENT
            records.append(self._settle(predecessor, successor, recipient, bundle, cash))
        return records

    def _settle(
        self,
        predecessor: Enterprise,
        successor: Enterprise,
        recipient: Holder,
        bundle: CertificateBundle,
        cash: int,
    ) -> ExchangeRecord:
        fmt = self.config.format_currency
        record = ExchangeRecord(predecessor_id=predecessor.id, holder=recipient, percent=bundle.percent, cash=0)
        msg = self.state.holder_name(recipient)

        if cash == 0 or recipient.is_market:
            msg += " receives"
        elif cash > 0:
            msg += f" receives {fmt(cash)} and"
            spend(self.state.bank, cash, self.state.cash_holder(recipient))
            record.cash = cash
        else:
            if not recipient.is_party:
                raise InvariantViolation(f"{recipient.kind.value} {recipient.id} cannot carry debt")
            party = self.state.party(recipient.id)
            owed = -cash
            shortfall = max(0, owed - max(party.cash, 0))
            msg += f" pays {fmt(owed)} and receives"
            spend(party, owed, self.state.bank, check_cash=False)
            record.cash = cash
            if shortfall:
                party.debt += shortfall
                record.debt = shortfall

        self.state.log.append(f"{msg} {bundle.percent}% of {successor.name}")
        if record.debt:
            self.state.log.append(
                f"{self.state.holder_name(recipient)} takes {fmt(record.debt)} of debt to complete payment"
            )
        return record

    # =========================================================================
    # Controlling owner
    # =========================================================================

    def _determine_controlling_owner(self, successor: Enterprise, priority: list[str]) -> str | None:
        """Pick the controlling owner and make their certificates match.

        Below 10% nobody qualifies and the successor stays ownerless until a
        later purchase makes someone controlling owner.
        """
        percents = self.ledger.party_percentages(successor)
        max_percent = max(percents.values(), default=0)
        if max_percent < 10:
            self.state.log.append(f"{successor.name} has no president")
            return None

        candidates = [party_id for party_id, percent in percents.items() if percent == max_percent]
        if len(candidates) > 1:
            candidates.sort(key=lambda p: priority.index(p) if p in priority else len(priority))
        president = candidates[0]
        successor.owner_id = president

        self._ensure_qualifying_certificate(successor, president, priority)
        self._ensure_controlling_certificate(successor, president)

        self.state.log.append(f"{self.state.party(president).name} becomes the president of {successor.name}")
        return president

    def _ensure_qualifying_certificate(self, successor: Enterprise, president: str, priority: list[str]) -> None:
        """The controlling owner must hold a 10% certificate.

        A 10% certificate comes from the market pool, or else from the party
        latest in the priority list that has one; the donor gets two of the
        controlling owner's 5% certificates back.
        """
        owner = Holder.party(president)
        owned = self.ledger.certificates_of(owner, successor)
        if any(share.percent == 10 for share in owned):
            return

        ten_percent_share = next(
            (s for s in self.ledger.certificates_of(Holder.market(), successor) if s.percent == 10), None
        )
        if ten_percent_share is None:
            for party_id in reversed(priority):
                if party_id == president:
                    continue
                ten_percent_share = next(
                    (s for s in self.ledger.certificates_of(Holder.party(party_id), successor) if s.percent == 10),
                    None,
                )
                if ten_percent_share is not None:
                    break
        if ten_percent_share is None:
            raise InvariantViolation(f"no 10% certificate of {successor.id} available for {president}")

        fives = [share for share in owned if share.percent == 5][:2]
        if len(fives) < 2:
            raise InvariantViolation(f"{president} cannot return two 5% certificates of {successor.id}")

        donor = ten_percent_share.holder
        self.ledger.transfer(CertificateBundle([ten_percent_share]), owner, allow_controlling_owner_change=False)
        self.ledger.transfer(CertificateBundle(fives), donor, allow_controlling_owner_change=False)
        self.state.log.append(
            f"{self.state.party(president).name} exchanges two 5% certificates for a 10% certificate "
            f"of {successor.name} with {self.state.holder_name(donor)}"
        )

    def _ensure_controlling_certificate(self, successor: Enterprise, president: str) -> None:
        """The controlling owner must hold the controlling certificate."""
        owner = Holder.party(president)
        controlling = successor.controlling_certificate
        previous = controlling.holder
        if previous == owner:
            return

        ordinary = next(
            (s for s in self.ledger.certificates_of(owner, successor) if not s.controlling and s.percent == 10), None
        )
        if ordinary is None:
            raise InvariantViolation(f"{president} has no ordinary 10% certificate of {successor.id} to swap")

        self.ledger.transfer(CertificateBundle([controlling]), owner, allow_controlling_owner_change=False)
        self.ledger.transfer(CertificateBundle([ordinary]), previous, allow_controlling_owner_change=False)
        self.state.log.append(
            f"{self.state.party(president).name} swaps a 10% certificate of {successor.name} "
            f"for the president's certificate with {self.state.holder_name(previous)}"
        )
