"""Round scheduler for railmerge.

Sequences the game through its round kinds:

    Allocation -> Trading -> Operating(1..K) -> [Consolidation] -> Trading -> ...

Allocation runs once. Leaving a trading round snapshots K, the operating-round
count of the current phase. After every operating round the scheduler works
out where the sequence goes next (Operating(i+1), or Trading with the turn
incremented) and, if the consolidation trigger is armed, stores that
destination as a ``PendingResumption`` and diverts into a single
consolidation round. Finishing the consolidation round resumes the stored
destination and disarms the trigger.

A broken bank ends the game once the operating round in progress finishes.
"""

from __future__ import annotations

import logging
from typing import Callable

from railmerge.errors import IllegalTransition, InvariantViolation
from railmerge.models.config import GameConfig, PhaseSpec
from railmerge.models.state import GameState, PendingResumption, Resumption, RoundKind, RoundToken

logger = logging.getLogger(__name__)


class RoundScheduler:
    """State machine over round kinds.

    Args:
        state: Game state holding the scheduler bookkeeping
        config: Game tables (phase list)
        run_consolidation: Callback executing the consolidation protocol
    """

    def __init__(self, state: GameState, config: GameConfig, run_consolidation: Callable[[], object]):
        self.state = state
        self.config = config
        self._run_consolidation = run_consolidation

    @property
    def current_round(self) -> RoundToken:
        return self.state.round

    @property
    def phase(self) -> PhaseSpec:
        return self.config.phases[self.state.phase_index]

    def finish_round(self) -> None:
        """Record that the active round's collaborator has completed it."""
        if self.state.game_over:
            raise IllegalTransition("the game is over")
        self.state.round.finished = True

    def trigger_consolidation(self) -> None:
        """Arm the consolidation trigger.

        Raises:
            IllegalTransition: Outside an operating round, or once consolidation has happened
        """
        if self.state.round.kind != RoundKind.OPERATING:
            raise IllegalTransition(
                f"consolidation can only be triggered during an operating round, not {self.state.round.kind.value}"
            )
        if self.state.consolidated:
            raise IllegalTransition("consolidation has already happened")
        if self.state.pending_consolidation:
            return
        self.state.pending_consolidation = True
        name = self.config.successor.name or self.config.successor.id
        self.state.log.append(f"-- Event: {name} will form after this operating round --")

    def advance_round(self) -> RoundToken:
        """Move to the next round and return it.

        Raises:
            IllegalTransition: If the game is over or the active round is unfinished
            InvariantViolation: If a consolidation round has no stored resumption
        """
        current = self.state.round
        if self.state.game_over or current.kind == RoundKind.GAME_OVER:
            raise IllegalTransition("the game is over")
        if not current.finished:
            raise IllegalTransition(f"{current.description} is still waiting for input")

        if current.kind == RoundKind.ALLOCATION:
            self._start_trading()
        elif current.kind == RoundKind.TRADING:
            self._start_operating_cycle()
        elif current.kind == RoundKind.OPERATING:
            self._after_operating(current)
        elif current.kind == RoundKind.CONSOLIDATION:
            self._after_consolidation()
        else:
            raise InvariantViolation(f"unknown round kind {current.kind}")
        return self.state.round

    # =========================================================================
    # Transitions
    # =========================================================================

    def _after_operating(self, current: RoundToken) -> None:
        if current.round_num < current.operating_rounds:
            resumption = PendingResumption(
                target=Resumption.OPERATING,
                round_num=current.round_num + 1,
                operating_rounds=current.operating_rounds,
            )
        else:
            self.state.turn += 1
            resumption = PendingResumption(target=Resumption.TRADING, round_num=self.state.turn)

        if self.state.bank.broken:
            self._end_game()
            return

        if self.state.pending_consolidation:
            self.state.resumption = resumption
            self._start_round(RoundToken(kind=RoundKind.CONSOLIDATION))
            self._run_consolidation()
            self.state.round.finished = True
        else:
            self._resume(resumption)

    def _after_consolidation(self) -> None:
        resumption = self.state.resumption
        if resumption is None:
            raise InvariantViolation("consolidation round finished without a stored resumption")
        self.state.pending_consolidation = False
        self.state.resumption = None
        self._resume(resumption)

    def _resume(self, resumption: PendingResumption) -> None:
        if resumption.target == Resumption.OPERATING:
            self._start_round(
                RoundToken(
                    kind=RoundKind.OPERATING,
                    round_num=resumption.round_num,
                    operating_rounds=resumption.operating_rounds,
                )
            )
        else:
            self._start_trading()

    def _start_trading(self) -> None:
        self._start_round(RoundToken(kind=RoundKind.TRADING, round_num=self.state.turn))

    def _start_operating_cycle(self) -> None:
        self._start_round(
            RoundToken(kind=RoundKind.OPERATING, round_num=1, operating_rounds=self.phase.operating_rounds)
        )

    def _start_round(self, token: RoundToken) -> None:
        if not self.state.round.finished:
            raise InvariantViolation(f"cannot start {token.description} while {self.state.round.description} is active")
        if token.kind == RoundKind.CONSOLIDATION and self.state.resumption is None:
            raise InvariantViolation("cannot enter consolidation without a stored resumption")
        self.state.round = token
        self.state.log.append(f"-- {token.description} --")
        logger.debug(f"Started {token.description} (turn {self.state.turn})")

    def _end_game(self) -> None:
        self.state.game_over = True
        self.state.round = RoundToken(kind=RoundKind.GAME_OVER, finished=True)
        self.state.log.append("-- Game over: the bank is broken --")
