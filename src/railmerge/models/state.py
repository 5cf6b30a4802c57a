"""Game state models for railmerge.

This module defines the state records mutated by the engine: parties, the
market pool, the bank, enterprises with their certificates, tokens and
trains, and the round-scheduler bookkeeping. ``GameState`` is the single
aggregate handed by reference to every component; it round-trips through
JSON so persistence collaborators can snapshot and restore a game.

Holders are a closed variant (``Holder``) rather than object references,
and valuation cells are stored as grid coordinates (``CellRef``), which
keeps the whole aggregate serialisable.
"""

from __future__ import annotations

from enum import Enum
from typing import Union

from pydantic import BaseModel, ConfigDict, Field

from railmerge.errors import InvariantViolation

MARKET_ID = "market"


class HolderKind(str, Enum):
    """Who can hold a certificate."""

    PARTY = "party"
    MARKET = "market"
    ENTERPRISE = "enterprise"


class Holder(BaseModel):
    """Reference to a certificate holder."""

    model_config = ConfigDict(frozen=True)

    kind: HolderKind
    id: str

    @classmethod
    def party(cls, party_id: str) -> Holder:
        return cls(kind=HolderKind.PARTY, id=party_id)

    @classmethod
    def market(cls) -> Holder:
        return cls(kind=HolderKind.MARKET, id=MARKET_ID)

    @classmethod
    def enterprise(cls, enterprise_id: str) -> Holder:
        return cls(kind=HolderKind.ENTERPRISE, id=enterprise_id)

    @property
    def is_party(self) -> bool:
        return self.kind == HolderKind.PARTY

    @property
    def is_market(self) -> bool:
        return self.kind == HolderKind.MARKET

    @property
    def is_enterprise(self) -> bool:
        return self.kind == HolderKind.ENTERPRISE


class CellRef(BaseModel):
    """Coordinates of a valuation-grid cell."""

    model_config = ConfigDict(frozen=True)

    row: int = Field(ge=0)
    column: int = Field(ge=0)


class Certificate(BaseModel):
    """One ownership unit of an enterprise.

    Attributes:
        id: Unique certificate id ("<enterprise>_<index>")
        enterprise_id: Issuing enterprise
        percent: Weight of the certificate
        controlling: True for the single controlling certificate
        double: True for a 10% unit standing for two 5% units
        holder: Current holder; exactly one at any time
    """

    id: str
    enterprise_id: str
    percent: int = Field(gt=0, le=100)
    controlling: bool = Field(default=False)
    double: bool = Field(default=False)
    holder: Holder


class Token(BaseModel):
    """A station marker. Bound when it occupies a location, spare otherwise."""

    enterprise_id: str
    location: str | None = Field(default=None)
    price: int = Field(default=0, ge=0)

    @property
    def used(self) -> bool:
        return self.location is not None


class Train(BaseModel):
    """A unit of equipment; owned by exactly one enterprise at a time."""

    id: str
    name: str
    distance: int
    price: int
    owner_id: str | None = Field(default=None)


class Party(BaseModel):
    """A human participant.

    Cash may only go negative through debt absorption during consolidation.
    """

    id: str
    name: str
    cash: int = Field(default=0)
    debt: int = Field(default=0, ge=0)


class MarketPool(BaseModel):
    """The impersonal open market. Holds certificates, never cash."""

    id: str = Field(default=MARKET_ID)
    name: str = Field(default="Market")


class Bank(BaseModel):
    """The bank. Goes broken once its cash is exhausted."""

    cash: int = Field(default=0)
    broken: bool = Field(default=False)


class Enterprise(BaseModel):
    """A tradable company.

    Attributes:
        id: Short identifier (e.g. "P1")
        name: Display name
        kind: "minor", "major" or "successor"
        cell: Current valuation cell (None until parred)
        par_cell: Valuation cell set at par time (None if never parred)
        opened: Certificates have been issued
        floated: Enterprise operates
        closed: Enterprise has left play
        cash: Treasury
        owner_id: Controlling owner party id (None while ownerless)
        tokens: Ordered station tokens
        trains: Ordered equipment
        certificates: Every certificate ever issued by this enterprise
    """

    id: str
    name: str = Field(default="")
    kind: str = Field(default="major")
    cell: CellRef | None = Field(default=None)
    par_cell: CellRef | None = Field(default=None)
    opened: bool = Field(default=False)
    floated: bool = Field(default=False)
    closed: bool = Field(default=False)
    cash: int = Field(default=0)
    owner_id: str | None = Field(default=None)
    tokens: list[Token] = Field(default_factory=list)
    trains: list[Train] = Field(default_factory=list)
    certificates: list[Certificate] = Field(default_factory=list)

    @property
    def had_par(self) -> bool:
        return self.par_cell is not None

    @property
    def controlling_certificate(self) -> Certificate:
        for cert in self.certificates:
            if cert.controlling:
                return cert
        raise InvariantViolation(f"{self.id} has no controlling certificate")

    @property
    def unissued(self) -> list[Certificate]:
        """Certificates still sitting in the enterprise's own pool."""
        own = Holder.enterprise(self.id)
        return [cert for cert in self.certificates if cert.holder == own]


class RoundKind(str, Enum):
    """Kinds of round the scheduler sequences."""

    ALLOCATION = "allocation"
    TRADING = "trading"
    OPERATING = "operating"
    CONSOLIDATION = "consolidation"
    GAME_OVER = "game_over"


class RoundToken(BaseModel):
    """The active round and its counters.

    Attributes:
        kind: Round kind
        round_num: Operating-round index within the cycle (1-based); turn
            number for trading rounds
        operating_rounds: Operating rounds in the current cycle (K)
        finished: The round's collaborator reported completion
    """

    kind: RoundKind
    round_num: int = Field(default=1, ge=1)
    operating_rounds: int = Field(default=0, ge=0)
    finished: bool = Field(default=False)

    @property
    def description(self) -> str:
        if self.kind == RoundKind.OPERATING:
            return f"Operating Round {self.round_num} of {self.operating_rounds}"
        if self.kind == RoundKind.TRADING:
            return f"Stock Round {self.round_num}"
        return self.kind.value.replace("_", " ").title()


class Resumption(str, Enum):
    """Where the sequence continues once a consolidation round finishes."""

    OPERATING = "operating"
    TRADING = "trading"


class PendingResumption(BaseModel):
    """A suspended transition, stored as data so snapshots can carry it."""

    target: Resumption
    round_num: int = Field(ge=1)
    operating_rounds: int = Field(default=0, ge=0)


CashHolder = Union[Party, Enterprise, Bank]


class GameState(BaseModel):
    """Complete game state.

    Constructed at game start, mutated only by the active round, and read by
    UI and persistence collaborators.
    """

    parties: list[Party] = Field(default_factory=list)
    market: MarketPool = Field(default_factory=MarketPool)
    bank: Bank = Field(default_factory=Bank)
    enterprises: dict[str, Enterprise] = Field(default_factory=dict)

    turn: int = Field(default=1, ge=1)
    phase_index: int = Field(default=0, ge=0)
    round: RoundToken = Field(default_factory=lambda: RoundToken(kind=RoundKind.ALLOCATION))
    pending_consolidation: bool = Field(default=False)
    resumption: PendingResumption | None = Field(default=None)
    consolidated: bool = Field(default=False)
    game_over: bool = Field(default=False)

    log: list[str] = Field(default_factory=list)

    def party(self, party_id: str) -> Party:
        for party in self.parties:
            if party.id == party_id:
                return party
        raise KeyError(f"Unknown party: {party_id}")

    def enterprise(self, enterprise_id: str) -> Enterprise:
        try:
            return self.enterprises[enterprise_id]
        except KeyError:
            raise KeyError(f"Unknown enterprise: {enterprise_id}") from None

    def active_enterprises(self) -> list[Enterprise]:
        """Enterprises still in play."""
        return [e for e in self.enterprises.values() if not e.closed]

    def holder_exists(self, holder: Holder) -> bool:
        if holder.is_market:
            return holder.id == self.market.id
        if holder.is_party:
            return any(p.id == holder.id for p in self.parties)
        return holder.id in self.enterprises

    def holder_name(self, holder: Holder) -> str:
        if holder.is_market:
            return self.market.name
        if holder.is_party:
            return self.party(holder.id).name
        return self.enterprise(holder.id).name

    def cash_holder(self, holder: Holder) -> CashHolder:
        """Resolve a holder that can carry cash. The market pool cannot."""
        if holder.is_party:
            return self.party(holder.id)
        if holder.is_enterprise:
            return self.enterprise(holder.id)
        raise InvariantViolation("the market pool does not hold cash")

    # Serialization methods
    def to_json(self) -> str:
        """Serialize state to JSON string."""
        return self.model_dump_json(indent=2)

    @classmethod
    def from_json(cls, json_str: str) -> GameState:
        """Deserialize state from JSON string."""
        return cls.model_validate_json(json_str)

    def to_dict(self) -> dict:
        """Serialize state to dictionary."""
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: dict) -> GameState:
        """Deserialize state from dictionary."""
        return cls.model_validate(data)


def spend(payer: CashHolder, amount: int, payee: CashHolder, check_cash: bool = True) -> None:
    """Move cash between two cash holders.

    The bank may overdraw; doing so marks it broken. Other payers must cover
    the amount unless ``check_cash`` is False, in which case the caller is
    responsible for settling the shortfall.

    Raises:
        ValueError: If amount is negative
        InvariantViolation: If a non-bank payer cannot cover the amount and
            check_cash is True
    """
    if amount < 0:
        raise ValueError(f"Cannot spend a negative amount: {amount}")
    if check_cash and not isinstance(payer, Bank) and payer.cash < amount:
        raise InvariantViolation(f"{payer.id} cannot pay {amount} with {payer.cash}")
    payer.cash -= amount
    payee.cash += amount
    if isinstance(payer, Bank) and payer.cash <= 0:
        payer.broken = True
