"""Enterprise lifecycle for railmerge: creation, par, float and closure."""

from __future__ import annotations

import logging

from railmerge.engine.market import ValuationCell, ValuationGrid
from railmerge.errors import InvariantViolation
from railmerge.models.config import EnterpriseSpec, GameConfig, SuccessorSpec
from railmerge.models.state import Certificate, Enterprise, GameState, Holder, Token

logger = logging.getLogger(__name__)


class EnterpriseRegistry:
    """Creates enterprises, assigns their valuation and retires them."""

    def __init__(self, state: GameState, config: GameConfig, grid: ValuationGrid):
        self.state = state
        self.config = config
        self.grid = grid

    def create(self, spec: EnterpriseSpec) -> Enterprise:
        """Register a starting enterprise with its tokens; certificates come at open time."""
        if spec.id in self.state.enterprises:
            raise InvariantViolation(f"enterprise {spec.id} already exists")
        enterprise = Enterprise(id=spec.id, name=spec.name or spec.id, kind=spec.kind)
        enterprise.tokens = [Token(enterprise_id=spec.id, price=spec.token_price) for _ in range(spec.tokens)]
        if spec.home is not None and enterprise.tokens:
            enterprise.tokens[0].location = spec.home
        self.state.enterprises[spec.id] = enterprise
        return enterprise

    def create_successor(self, spec: SuccessorSpec) -> Enterprise:
        """Register the consolidation successor. It starts with no tokens."""
        if spec.id in self.state.enterprises:
            raise InvariantViolation(f"successor {spec.id} already exists")
        enterprise = Enterprise(id=spec.id, name=spec.name or spec.id, kind="successor")
        self.state.enterprises[spec.id] = enterprise
        return enterprise

    def open(self, enterprise: Enterprise, shares: list[int], double_certificates: bool = False) -> None:
        """Issue the certificate set into the enterprise's own pool.

        The first entry of ``shares`` is the controlling certificate.
        """
        if enterprise.opened:
            raise InvariantViolation(f"{enterprise.id} is already open")
        own = Holder.enterprise(enterprise.id)
        enterprise.certificates = [
            Certificate(
                id=f"{enterprise.id}_{index}",
                enterprise_id=enterprise.id,
                percent=percent,
                controlling=index == 0,
                double=double_certificates and index > 0 and percent == 10,
                holder=own,
            )
            for index, percent in enumerate(shares)
        ]
        enterprise.opened = True

    def set_par(self, enterprise: Enterprise, cell: ValuationCell) -> None:
        """Place the enterprise on its par cell."""
        enterprise.par_cell = cell.ref
        enterprise.cell = cell.ref
        logger.debug(f"{enterprise.id} parred at {cell.price}")

    def float_enterprise(self, enterprise: Enterprise) -> None:
        if not enterprise.opened:
            raise InvariantViolation(f"{enterprise.id} cannot float before it opens")
        enterprise.floated = True

    def move_cell(self, enterprise: Enterprise, new_cell: ValuationCell) -> None:
        """Record a valuation move produced by the grid."""
        old_price = self.grid.price(enterprise.cell) if enterprise.cell is not None else None
        enterprise.cell = new_cell.ref
        if old_price is not None and old_price != new_cell.price:
            self.state.log.append(
                f"{enterprise.name}'s share price moves from "
                f"{self.config.format_currency(old_price)} to {self.config.format_currency(new_cell.price)}"
            )

    def close(self, enterprise: Enterprise, quiet: bool = False) -> None:
        """Retire an enterprise from play.

        Its own certificates return to its pool and certificates it held in
        other enterprises go to the market pool. Cash and trains must already
        be gone; leftover tokens are discarded.

        Raises:
            InvariantViolation: If the enterprise still carries cash or equipment
        """
        if enterprise.cash != 0:
            raise InvariantViolation(f"{enterprise.id} closes holding {enterprise.cash}")
        if enterprise.trains:
            raise InvariantViolation(f"{enterprise.id} closes holding trains")

        own = Holder.enterprise(enterprise.id)
        for cert in enterprise.certificates:
            cert.holder = own
        for other in self.state.enterprises.values():
            if other.id == enterprise.id:
                continue
            for cert in other.certificates:
                if cert.holder == own:
                    cert.holder = Holder.market()

        for token in enterprise.tokens:
            token.location = None
        enterprise.tokens = []
        enterprise.cell = None
        enterprise.owner_id = None
        enterprise.floated = False
        enterprise.closed = True
        if not quiet:
            self.state.log.append(f"{enterprise.name} closes")
        logger.debug(f"Closed {enterprise.id} (quiet={quiet})")
