"""Configuration records for railmerge.

This module defines the immutable Pydantic models for the static game
tables: valuation grid, phases, trains, enterprises and the consolidation
successor. A ``GameConfig`` is built once when a game is constructed and
passed explicitly to every component that needs it.

Configs are validated on load, so a bad table fails fast with a Pydantic
ValidationError instead of surfacing mid-game.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from railmerge import parameters

SellMovement = Literal["down_block", "down_share"]

ORDINARY_DENOMINATIONS = (5, 10)


def validate_share_layout(shares: list[int]) -> list[int]:
    """Check a certificate layout: controlling first, ordinary units of 5 or 10, total 100."""
    if not shares:
        raise ValueError("share layout must contain a controlling certificate")
    if sum(shares) != 100:
        raise ValueError(f"share layout must total 100%, got {sum(shares)}%")
    if len(shares) > 1:
        bad = [s for s in shares[1:] if s not in ORDINARY_DENOMINATIONS]
        if bad:
            raise ValueError(f"ordinary certificates must be 5% or 10%, got {bad}")
    return shares


class TrainSpec(BaseModel):
    """One tier of equipment in the train roster."""

    model_config = ConfigDict(frozen=True)

    name: str
    distance: int = Field(ge=1)
    price: int = Field(ge=0)
    rusts_on: str | None = Field(default=None)
    num: int = Field(default=1, ge=1)


class PhaseSpec(BaseModel):
    """One entry of the ordered phase list.

    Attributes:
        name: Phase label (e.g. "2.3")
        on: Train tier whose first purchase starts the phase
        train_limit: Holding limit per enterprise class
        tiles: Unlocked tile colours
        operating_rounds: Operating rounds per cycle while this phase is active
        events: Event names fired when the phase starts
    """

    model_config = ConfigDict(frozen=True)

    name: str
    on: str | None = Field(default=None)
    train_limit: dict[str, int] = Field(default_factory=dict)
    tiles: list[str] = Field(default_factory=list)
    operating_rounds: int = Field(ge=1)
    events: list[str] = Field(default_factory=list)


class EnterpriseSpec(BaseModel):
    """Setup record for an enterprise that exists from the start of the game."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = Field(default="")
    kind: Literal["minor", "major"] = Field(default="major")
    shares: list[int] = Field(default_factory=lambda: list(parameters.MAJOR_SHARES))
    par_price: int | None = Field(default=None)
    tokens: int = Field(default=1, ge=0)
    home: str | None = Field(default=None, description="Location of the first token, bound at setup")
    token_price: int = Field(default=0, ge=0)

    @field_validator("shares")
    @classmethod
    def check_shares(cls, v: list[int]) -> list[int]:
        return validate_share_layout(v)


class SuccessorSpec(BaseModel):
    """The enterprise created when consolidation fires."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = Field(default="")
    shares: list[int]
    predecessors: list[str] = Field(description="Predecessor ids in merge priority order")
    starting_cash: int = Field(default=0, ge=0)
    starting_train: str | None = Field(default=None)
    token_price: int = Field(default=0, ge=0)
    double_certificates: bool = Field(default=True, description="Mark ordinary 10% units as double 5% units")

    @field_validator("shares")
    @classmethod
    def check_shares(cls, v: list[int]) -> list[int]:
        validate_share_layout(v)
        if v[0] != 10:
            raise ValueError("successor controlling certificate must be 10%")
        return v


class GameConfig(BaseModel):
    """Complete static configuration for one game."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(default="default")
    bank_cash: int = Field(default=parameters.BANK_CASH, ge=0)
    currency_format: str = Field(default=parameters.CURRENCY_FORMAT)
    market: list[list[str]]
    sell_movement: SellMovement = Field(default=parameters.SELL_MOVEMENT)
    sell_steps_per_block: int = Field(default=parameters.SELL_STEPS_PER_BLOCK, ge=1)
    phases: list[PhaseSpec] = Field(min_length=1)
    trains: list[TrainSpec] = Field(default_factory=list)
    enterprises: list[EnterpriseSpec]
    successor: SuccessorSpec
    consolidation_event: str = Field(default=parameters.CONSOLIDATION_EVENT)
    cert_limit: dict[int, int] = Field(default_factory=dict)
    starting_cash: dict[int, int] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_references(self) -> GameConfig:
        """Successor predecessors and starting train must refer to known entries."""
        ids = [e.id for e in self.enterprises]
        if len(set(ids)) != len(ids):
            raise ValueError("enterprise ids must be unique")
        if self.successor.id in ids:
            raise ValueError(f"successor id {self.successor.id} clashes with an enterprise id")
        missing = [p for p in self.successor.predecessors if p not in ids]
        if missing:
            raise ValueError(f"unknown predecessor enterprises: {missing}")
        train = self.successor.starting_train
        if train is not None and train not in {t.name for t in self.trains}:
            raise ValueError(f"unknown successor starting train: {train}")
        return self

    def format_currency(self, amount: int) -> str:
        """Format an amount of money for the game log."""
        return self.currency_format.format(amount)

    def train_spec(self, name: str) -> TrainSpec:
        """Look up a train tier by name."""
        for spec in self.trains:
            if spec.name == name:
                return spec
        raise KeyError(f"Unknown train: {name}")

    def enterprise_spec(self, enterprise_id: str) -> EnterpriseSpec:
        """Look up an enterprise setup record by id."""
        for spec in self.enterprises:
            if spec.id == enterprise_id:
                return spec
        raise KeyError(f"Unknown enterprise: {enterprise_id}")

    def lookup_by_players(self, table: dict[int, int], num_players: int, label: str) -> int:
        if num_players not in table:
            raise ValueError(f"No {label} entry for {num_players} players")
        return table[num_players]

    # Serialization methods
    def to_json(self) -> str:
        """Serialize config to JSON string."""
        return self.model_dump_json(indent=2)

    @classmethod
    def from_json(cls, json_str: str) -> GameConfig:
        """Deserialize config from JSON string."""
        return cls.model_validate_json(json_str)

    @classmethod
    def from_dict(cls, data: dict) -> GameConfig:
        """Deserialize config from dictionary."""
        return cls.model_validate(data)


def default_config() -> GameConfig:
    """Build the standard game tables from ``railmerge.parameters``."""
    enterprises = [
        EnterpriseSpec(
            id=minor_id,
            name=f"Minor {minor_id}",
            kind="minor",
            shares=list(parameters.MINOR_SHARES),
            home=parameters.MINOR_HOMES.get(minor_id),
        )
        for minor_id in parameters.PREDECESSORS
    ]
    enterprises += [
        EnterpriseSpec(id=major_id, name=major_id, kind="major", par_price=price, tokens=3)
        for major_id, price in parameters.PAR_PRICES.items()
    ]
    return GameConfig(
        name="default",
        bank_cash=parameters.BANK_CASH,
        currency_format=parameters.CURRENCY_FORMAT,
        market=parameters.MARKET,
        sell_movement=parameters.SELL_MOVEMENT,
        sell_steps_per_block=parameters.SELL_STEPS_PER_BLOCK,
        phases=[PhaseSpec(**phase) for phase in parameters.PHASES],
        trains=[TrainSpec(**train) for train in parameters.TRAINS],
        enterprises=enterprises,
        successor=SuccessorSpec(
            id=parameters.SUCCESSOR_ID,
            name=parameters.SUCCESSOR_NAME,
            shares=list(parameters.SUCCESSOR_SHARES),
            predecessors=list(parameters.PREDECESSORS),
            starting_cash=parameters.SUCCESSOR_STARTING_CASH,
            starting_train=parameters.SUCCESSOR_STARTING_TRAIN,
            token_price=parameters.SUCCESSOR_TOKEN_PRICE,
        ),
        consolidation_event=parameters.CONSOLIDATION_EVENT,
        cert_limit=dict(parameters.CERT_LIMIT),
        starting_cash=dict(parameters.STARTING_CASH),
    )
