"""Ownership ledger for railmerge.

Tracks who holds every certificate and moves certificates in bundles. A
bundle is applied all-or-nothing: every check runs against the projected
holdings before a single holder field changes.

Controlling-owner side effects are opt-in per transfer. Corrective swaps pass
``allow_controlling_owner_change=False`` so that an accidental control change
surfaces as an InvariantViolation instead of silently moving control.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from railmerge.errors import InvariantViolation
from railmerge.models.state import Certificate, Enterprise, GameState, Holder

logger = logging.getLogger(__name__)


@dataclass
class CertificateBundle:
    """An ordered set of certificates transferred as one unit."""

    certificates: list[Certificate] = field(default_factory=list)

    def __post_init__(self) -> None:
        ids = [cert.id for cert in self.certificates]
        if len(set(ids)) != len(ids):
            raise InvariantViolation(f"bundle lists a certificate twice: {ids}")

    @property
    def percent(self) -> int:
        return sum(cert.percent for cert in self.certificates)

    @property
    def enterprise_ids(self) -> list[str]:
        seen: list[str] = []
        for cert in self.certificates:
            if cert.enterprise_id not in seen:
                seen.append(cert.enterprise_id)
        return seen

    def __len__(self) -> int:
        return len(self.certificates)

    def __bool__(self) -> bool:
        return bool(self.certificates)


class OwnershipLedger:
    """Certificate holdings for every enterprise in a game state."""

    def __init__(self, state: GameState):
        self.state = state

    # =========================================================================
    # Queries
    # =========================================================================

    def certificates_of(self, holder: Holder, enterprise: Enterprise) -> list[Certificate]:
        """Certificates of ``enterprise`` held by ``holder``, in issue order."""
        return [cert for cert in enterprise.certificates if cert.holder == holder]

    def percent_of(self, holder: Holder, enterprise: Enterprise) -> int:
        return sum(cert.percent for cert in self.certificates_of(holder, enterprise))

    def holders_of(self, enterprise: Enterprise) -> list[Holder]:
        """Distinct holders in order of first appearance in the certificate list."""
        holders: list[Holder] = []
        for cert in enterprise.certificates:
            if cert.holder not in holders:
                holders.append(cert.holder)
        return holders

    def party_percentages(self, enterprise: Enterprise) -> dict[str, int]:
        """Percent held by each party with a stake, in seat order."""
        percents: dict[str, int] = {}
        for party in self.state.parties:
            percent = self.percent_of(Holder.party(party.id), enterprise)
            if percent > 0:
                percents[party.id] = percent
        return percents

    def certificates_held_by(self, holder: Holder) -> list[Certificate]:
        """Every certificate, of any enterprise, held by ``holder``."""
        return [
            cert
            for enterprise in self.state.enterprises.values()
            for cert in enterprise.certificates
            if cert.holder == holder
        ]

    def certificate_count(self, party_id: str) -> int:
        """Certificates counted against a party's holding limit; double units count as two."""
        return sum(2 if cert.double else 1 for cert in self.certificates_held_by(Holder.party(party_id)))

    # =========================================================================
    # Invariants
    # =========================================================================

    def validate(self, enterprise: Enterprise) -> None:
        """Check conservation and holder validity for one enterprise.

        Raises:
            InvariantViolation: If percentages do not total 100, the controlling
                certificate is missing or duplicated, or a holder is unknown
        """
        if not enterprise.opened:
            return
        total = sum(cert.percent for cert in enterprise.certificates)
        if total != 100:
            raise InvariantViolation(f"{enterprise.id} certificates total {total}%, expected 100%")
        controlling = [cert for cert in enterprise.certificates if cert.controlling]
        if len(controlling) != 1:
            raise InvariantViolation(f"{enterprise.id} has {len(controlling)} controlling certificates")
        for cert in enterprise.certificates:
            if not self.state.holder_exists(cert.holder):
                raise InvariantViolation(f"{cert.id} is held by unknown {cert.holder.kind.value} {cert.holder.id}")

    def validate_all(self) -> None:
        for enterprise in self.state.enterprises.values():
            self.validate(enterprise)

    # =========================================================================
    # Transfers
    # =========================================================================

    def transfer(
        self,
        bundle: CertificateBundle,
        to_holder: Holder,
        allow_controlling_owner_change: bool = True,
    ) -> None:
        """Reassign every certificate in ``bundle`` to ``to_holder``.

        Args:
            bundle: Certificates to move
            to_holder: New holder for all of them
            allow_controlling_owner_change: When False, the transfer fails if
                another party would end up holding more of an affected
                enterprise than its controlling owner. When True, control
                follows the holdings (see ``_update_controlling_owner``).

        Raises:
            InvariantViolation: If the bundle is empty, references an unknown
                certificate or holder, or would change control while
                ``allow_controlling_owner_change`` is False
        """
        if not bundle:
            raise InvariantViolation("cannot transfer an empty bundle")
        if not self.state.holder_exists(to_holder):
            raise InvariantViolation(f"unknown holder {to_holder.kind.value} {to_holder.id}")
        for cert in bundle.certificates:
            owner_enterprise = self.state.enterprise(cert.enterprise_id)
            if not any(c is cert for c in owner_enterprise.certificates):
                raise InvariantViolation(f"{cert.id} is not a live certificate of {cert.enterprise_id}")

        if not allow_controlling_owner_change:
            for enterprise_id in bundle.enterprise_ids:
                self._check_control_unchanged(self.state.enterprise(enterprise_id), bundle, to_holder)

        for cert in bundle.certificates:
            cert.holder = to_holder
        logger.debug(f"Transferred {[c.id for c in bundle.certificates]} to {to_holder.kind.value} {to_holder.id}")

        if allow_controlling_owner_change:
            for enterprise_id in bundle.enterprise_ids:
                self._update_controlling_owner(self.state.enterprise(enterprise_id))

    def _projected_percent(self, holder: Holder, enterprise: Enterprise, bundle: CertificateBundle, to_holder: Holder) -> int:
        moving = {cert.id for cert in bundle.certificates}
        percent = 0
        for cert in enterprise.certificates:
            projected = to_holder if cert.id in moving else cert.holder
            if projected == holder:
                percent += cert.percent
        return percent

    def _check_control_unchanged(self, enterprise: Enterprise, bundle: CertificateBundle, to_holder: Holder) -> None:
        if enterprise.owner_id is None:
            return
        owner = Holder.party(enterprise.owner_id)
        owner_percent = self._projected_percent(owner, enterprise, bundle, to_holder)
        for party in self.state.parties:
            if party.id == enterprise.owner_id:
                continue
            percent = self._projected_percent(Holder.party(party.id), enterprise, bundle, to_holder)
            if percent > owner_percent:
                raise InvariantViolation(
                    f"transfer would move control of {enterprise.id} from {enterprise.owner_id} to {party.id}"
                )

    def _update_controlling_owner(self, enterprise: Enterprise) -> None:
        """Apply control side effects after a permitted transfer.

        An ownerless enterprise whose controlling certificate now sits with a
        party gets that party as owner. An owned enterprise passes to any
        party that strictly exceeds the current owner, walking seats from
        the owner onward; the new owner hands back ordinary certificates
        worth the controlling certificate in exchange for it.
        """
        controlling = enterprise.controlling_certificate
        if enterprise.owner_id is None:
            if controlling.holder.is_party:
                enterprise.owner_id = controlling.holder.id
                self.state.log.append(f"{self.state.party(enterprise.owner_id).name} becomes the president of {enterprise.name}")
            return

        owner = Holder.party(enterprise.owner_id)
        owner_percent = self.percent_of(owner, enterprise)
        challenger = None
        best = owner_percent
        for party in self._seats_after(enterprise.owner_id):
            percent = self.percent_of(Holder.party(party), enterprise)
            if percent > best:
                challenger, best = party, percent
        if challenger is None:
            return

        new_owner = Holder.party(challenger)
        if controlling.holder == owner:
            returned = self._pick_ordinary(self.certificates_of(new_owner, enterprise), controlling.percent)
            if returned is None:
                raise InvariantViolation(
                    f"{challenger} cannot return {controlling.percent}% of {enterprise.id} for the controlling certificate"
                )
            for cert in returned:
                cert.holder = owner
            controlling.holder = new_owner
        enterprise.owner_id = challenger
        self.state.log.append(f"{self.state.party(challenger).name} becomes the president of {enterprise.name}")

    def _seats_after(self, party_id: str) -> list[str]:
        ids = [p.id for p in self.state.parties]
        start = ids.index(party_id)
        return ids[start + 1 :] + ids[:start]

    @staticmethod
    def _pick_ordinary(certificates: Iterable[Certificate], percent: int) -> list[Certificate] | None:
        """Choose ordinary certificates totalling exactly ``percent``, largest first."""
        ordinary = sorted((c for c in certificates if not c.controlling), key=lambda c: -c.percent)

        def search(start: int, remaining: int) -> list[Certificate] | None:
            if remaining == 0:
                return []
            for i in range(start, len(ordinary)):
                if ordinary[i].percent <= remaining:
                    rest = search(i + 1, remaining - ordinary[i].percent)
                    if rest is not None:
                        return [ordinary[i]] + rest
            return None

        return search(0, percent)
