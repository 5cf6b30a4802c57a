"""Physical asset migration between enterprises.

Moves station tokens and trains from a predecessor into the successor during
consolidation. Migration bypasses ordinary placement legality: the only rule
enforced is that an enterprise never holds two tokens on one location.
"""

from __future__ import annotations

import logging

from railmerge.errors import InvariantViolation
from railmerge.models.state import Enterprise, GameState, Token

logger = logging.getLogger(__name__)


class AssetTransferResolver:
    """Token and train migration from a predecessor to a successor."""

    def __init__(self, state: GameState):
        self.state = state

    def migrate_tokens(self, predecessor: Enterprise, successor: Enterprise, token_price: int = 0) -> None:
        """Give the successor one fresh token per predecessor token.

        A bound predecessor token hands its location to the new token unless
        the successor already sits there; in that case the predecessor token
        is discarded and the new token stays spare on the charter.
        """
        locations = ", ".join(token.location if token.used else "Unused" for token in predecessor.tokens)
        count = len(predecessor.tokens)
        self.state.log.append(f"{successor.name} receives {count} token{'' if count == 1 else 's'}: {locations}")

        for token in predecessor.tokens:
            new_token = Token(enterprise_id=successor.id, price=token_price)
            successor.tokens.append(new_token)
            if not token.used:
                continue

            location = token.location
            if self.has_token_at(successor, location):
                self.state.log.append(
                    f"{successor.name} already has a token on {location}, placing token on charter instead"
                )
                logger.debug(f"Token conflict for {successor.id} on {location}")
                token.location = None
            else:
                new_token.location = location
                token.location = None
        predecessor.tokens = []

    def migrate_trains(self, predecessor: Enterprise, successor: Enterprise) -> None:
        """Reassign every predecessor train to the successor, keeping order."""
        trains = predecessor.trains
        if not trains:
            return
        self.state.log.append(
            f"{successor.name} receives {len(trains)} train{'' if len(trains) == 1 else 's'}: "
            f"{', '.join(train.name for train in trains)}"
        )
        for train in trains:
            train.owner_id = successor.id
        successor.trains.extend(trains)
        predecessor.trains = []

    @staticmethod
    def has_token_at(enterprise: Enterprise, location: str) -> bool:
        return any(token.location == location for token in enterprise.tokens)

    @staticmethod
    def sort_tokens(enterprise: Enterprise) -> None:
        """Bound tokens first, spare tokens last, keeping relative order."""
        enterprise.tokens.sort(key=lambda token: 0 if token.used else 1)

    @staticmethod
    def validate_tokens(enterprise: Enterprise) -> None:
        """Check that no location holds two tokens of the enterprise.

        Raises:
            InvariantViolation: If a location is duplicated
        """
        seen: set[str] = set()
        for token in enterprise.tokens:
            if not token.used:
                continue
            if token.location in seen:
                raise InvariantViolation(f"{enterprise.id} holds two tokens on {token.location}")
            seen.add(token.location)
