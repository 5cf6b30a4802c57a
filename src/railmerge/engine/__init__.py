"""Game engine module for railmerge.

This module contains the rules core:
- market: Valuation grid and price movement
- ledger: Certificate holdings and bundle transfers
- registry: Enterprise lifecycle
- assets: Token and train migration
- merger: The consolidation protocol
- scheduler: Round sequencing with deferred consolidation
- game_engine: Facade and game setup

Usage:
    from railmerge.engine import create_game
    from railmerge.storage import ensure_default_config, get_config_repository

    repo = get_config_repository()
    game = create_game(ensure_default_config(repo), repo, ["Ada", "Ben", "Cy"])

    # Drive rounds as their collaborators finish them
    game.finish_round()
    game.advance_round()

    # Phase changes fire events, including consolidation
    game.advance_phase()
"""

from railmerge.engine.assets import AssetTransferResolver
from railmerge.engine.game_engine import GameEngine, create_game
from railmerge.engine.ledger import CertificateBundle, OwnershipLedger
from railmerge.engine.market import CellType, ValuationCell, ValuationGrid, parse_cell
from railmerge.engine.merger import (
    ConsolidationResult,
    ExchangeRecord,
    MergerCoordinator,
)
from railmerge.engine.registry import EnterpriseRegistry
from railmerge.engine.scheduler import RoundScheduler

__all__ = [
    # Game engine classes
    "GameEngine",
    "create_game",
    # Components
    "ValuationGrid",
    "ValuationCell",
    "CellType",
    "parse_cell",
    "OwnershipLedger",
    "CertificateBundle",
    "EnterpriseRegistry",
    "AssetTransferResolver",
    "MergerCoordinator",
    "ConsolidationResult",
    "ExchangeRecord",
    "RoundScheduler",
]
