"""Exceptions raised by the railmerge engine."""


class RailmergeError(Exception):
    """Base class for engine errors."""


class InvariantViolation(RailmergeError):
    """An accounting or state-machine invariant no longer holds.

    Indicates a logic defect rather than a player mistake. The game cannot
    continue once this is raised.
    """


class IllegalTransition(RailmergeError):
    """The requested operation is not allowed in the current round.

    Raised before any state is touched, so the caller may recover.
    """
