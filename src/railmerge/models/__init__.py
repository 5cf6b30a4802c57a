"""Railmerge game models.

This module exports the configuration records and the game state aggregate.
"""

from .config import (
    EnterpriseSpec,
    GameConfig,
    PhaseSpec,
    SuccessorSpec,
    TrainSpec,
    default_config,
    validate_share_layout,
)
from .state import (
    MARKET_ID,
    Bank,
    CellRef,
    Certificate,
    Enterprise,
    GameState,
    Holder,
    HolderKind,
    MarketPool,
    Party,
    PendingResumption,
    Resumption,
    RoundKind,
    RoundToken,
    Token,
    Train,
    spend,
)

__all__ = [
    # Configuration
    "GameConfig",
    "PhaseSpec",
    "TrainSpec",
    "EnterpriseSpec",
    "SuccessorSpec",
    "default_config",
    "validate_share_layout",
    # Enums
    "HolderKind",
    "RoundKind",
    "Resumption",
    # State Models
    "GameState",
    "Party",
    "MarketPool",
    "Bank",
    "Enterprise",
    "Certificate",
    "Token",
    "Train",
    "Holder",
    "CellRef",
    "RoundToken",
    "PendingResumption",
    "MARKET_ID",
    # Functions
    "spend",
]
