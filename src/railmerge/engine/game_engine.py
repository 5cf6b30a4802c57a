"""Core game engine for railmerge.

This module implements the GameEngine class, the facade the surrounding game
loop talks to. It owns the game state aggregate and wires the components
that mutate it:

- ValuationGrid: price cells and movement
- OwnershipLedger: certificate holdings and bundle transfers
- EnterpriseRegistry: enterprise lifecycle
- AssetTransferResolver: token and train migration
- MergerCoordinator: the one-shot consolidation protocol
- RoundScheduler: round sequencing and the deferred resumption

Setup (at construction):
1. Parties receive starting capital from the bank by party count
2. Every configured enterprise is created and opened; majors are parred
3. The game starts in the allocation round
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from railmerge.engine.assets import AssetTransferResolver
from railmerge.engine.ledger import OwnershipLedger
from railmerge.engine.market import ValuationGrid
from railmerge.engine.merger import ConsolidationResult, MergerCoordinator
from railmerge.engine.registry import EnterpriseRegistry
from railmerge.engine.scheduler import RoundScheduler
from railmerge.errors import IllegalTransition
from railmerge.models.config import GameConfig, PhaseSpec
from railmerge.models.state import (
    Enterprise,
    GameState,
    Party,
    RoundKind,
    RoundToken,
    spend,
)

if TYPE_CHECKING:
    from railmerge.storage import ConfigRepository

logger = logging.getLogger(__name__)


class GameEngine:
    """Facade over the game state and the rules components.

    Attributes:
        config: Static game tables
        state: Current game state
        last_consolidation: Result of the consolidation round, once it has run
    """

    def __init__(
        self,
        config: GameConfig,
        player_names: Optional[list[str]] = None,
        state: Optional[GameState] = None,
    ) -> None:
        """Start a new game, or wrap a restored state.

        Args:
            config: Game tables
            player_names: Names of the parties, in seat order (new games only)
            state: Existing state to resume instead of setting up a new game

        Raises:
            ValueError: If neither player names nor a state are given, or the
                party count has no starting-capital entry
        """
        self.config = config
        self.last_consolidation: Optional[ConsolidationResult] = None

        if state is None:
            if not player_names:
                raise ValueError("A new game needs at least one player")
            self.state = GameState()
            self._build_components()
            self._setup(player_names)
        else:
            self.state = state
            self._build_components()

    def _build_components(self) -> None:
        config = self.config
        self.grid = ValuationGrid(config.market, config.sell_movement, config.sell_steps_per_block)
        self.ledger = OwnershipLedger(self.state)
        self.registry = EnterpriseRegistry(self.state, config, self.grid)
        self.assets = AssetTransferResolver(self.state)
        self.merger = MergerCoordinator(self.state, config, self.grid, self.ledger, self.registry, self.assets)
        self.scheduler = RoundScheduler(self.state, config, self._run_consolidation)

    def _setup(self, player_names: list[str]) -> None:
        state = self.state
        num_players = len(player_names)
        state.bank.cash = self.config.bank_cash

        starting_cash = 0
        if self.config.starting_cash:
            starting_cash = self.config.lookup_by_players(self.config.starting_cash, num_players, "starting cash")
        for seat, name in enumerate(player_names, start=1):
            party = Party(id=f"p{seat}", name=name)
            state.parties.append(party)
            spend(state.bank, starting_cash, party)

        for spec in self.config.enterprises:
            enterprise = self.registry.create(spec)
            self.registry.open(enterprise, spec.shares)
            if spec.par_price is not None:
                self.registry.set_par(enterprise, self.grid.par_cell_for(spec.par_price))

        state.log.append(f"-- Phase {self.phase.name} --")
        state.log.append(f"-- {state.round.description} --")
        logger.info(f"New game with {num_players} players, {len(self.config.enterprises)} enterprises")

    def _run_consolidation(self) -> ConsolidationResult:
        self.last_consolidation = self.merger.run()
        return self.last_consolidation

    # =========================================================================
    # Public API
    # =========================================================================

    @property
    def phase(self) -> PhaseSpec:
        return self.config.phases[self.state.phase_index]

    @property
    def current_round(self) -> RoundToken:
        return self.state.round

    def advance_round(self) -> RoundToken:
        """Drive the scheduler one step. See RoundScheduler.advance_round."""
        return self.scheduler.advance_round()

    def finish_round(self) -> None:
        """Mark the active round complete so the scheduler may advance."""
        self.scheduler.finish_round()

    def trigger_consolidation(self) -> None:
        """Arm consolidation; only legal during an operating round."""
        self.scheduler.trigger_consolidation()

    def advance_phase(self) -> PhaseSpec:
        """Move to the next phase and fire its events.

        Raises:
            IllegalTransition: If there is no later phase, or the phase fires
                consolidation outside an operating round
        """
        if self.state.phase_index + 1 >= len(self.config.phases):
            raise IllegalTransition(f"phase {self.phase.name} is the last phase")
        next_phase = self.config.phases[self.state.phase_index + 1]
        fires_consolidation = self.config.consolidation_event in next_phase.events
        if fires_consolidation and self.state.round.kind != RoundKind.OPERATING:
            raise IllegalTransition(f"phase {next_phase.name} must start during an operating round")

        self.state.phase_index += 1
        self.state.log.append(f"-- Phase {next_phase.name} --")
        for event in next_phase.events:
            if event == self.config.consolidation_event:
                if not self.state.consolidated:
                    self.scheduler.trigger_consolidation()
            else:
                self.state.log.append(f"-- Event: {event} --")
        return next_phase

    def move_after_sale(self, enterprise_id: str, units: int) -> int:
        """Apply the sale movement to an enterprise's valuation; return the new price."""
        enterprise = self.state.enterprise(enterprise_id)
        if enterprise.cell is None:
            raise IllegalTransition(f"{enterprise_id} has no share price")
        new_ref = self.grid.moved_after_sale(enterprise.cell, units)
        self.registry.move_cell(enterprise, self.grid.cell(new_ref))
        return self.grid.price(new_ref)

    def share_price(self, enterprise_id: str) -> Optional[int]:
        enterprise = self.state.enterprise(enterprise_id)
        return self.grid.price(enterprise.cell) if enterprise.cell is not None else None

    def cert_limit(self) -> int:
        return self.config.lookup_by_players(self.config.cert_limit, len(self.state.parties), "certificate limit")

    def format_currency(self, amount: int) -> str:
        return self.config.format_currency(amount)

    def get_party(self, party_id: str) -> Party:
        return self.state.party(party_id)

    def get_enterprise(self, enterprise_id: str) -> Enterprise:
        return self.state.enterprise(enterprise_id)

    def is_game_over(self) -> bool:
        return self.state.game_over

    def get_log(self) -> list[str]:
        return list(self.state.log)

    def get_current_state(self) -> GameState:
        """Get a deep copy of the current game state."""
        return self.state.model_copy(deep=True)

    # Snapshot methods
    def snapshot(self) -> str:
        """Serialize the full game state to JSON."""
        return self.state.to_json()

    @classmethod
    def restore(cls, config: GameConfig, snapshot: str) -> GameEngine:
        """Rebuild an engine from a snapshot taken with ``snapshot()``."""
        return cls(config, state=GameState.from_json(snapshot))


# =============================================================================
# Factory function for creating games
# =============================================================================


def create_game(
    config_id: str,
    config_repo: ConfigRepository,
    player_names: list[str],
) -> GameEngine:
    """Create a new game from a stored configuration.

    Args:
        config_id: ID of the config to load
        config_repo: Repository holding game configurations
        player_names: Party names in seat order

    Returns:
        Initialized GameEngine

    Raises:
        ValueError: If the config is not found
    """
    data = config_repo.get_config(config_id)
    if data is None:
        raise ValueError(f"Config not found: {config_id}")
    return GameEngine(GameConfig.from_dict(data), player_names=player_names)
