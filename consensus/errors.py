"""Error taxonomy for consensus runs."""

from enum import Enum


class Status(str, Enum):
    """Terminal status of a consensus run."""

    OK = "ok"
    NO_CONSENSUS = "no_consensus"
    INSUFFICIENT_DATA = "insufficient_data"
    DEGENERATE_DATA = "degenerate_data"


class ConsensusError(Exception):
    """Base class for failures reported by a consensus run."""

    status = None


class InsufficientDataError(ConsensusError):
    """Fewer correspondences than the minimal sample size."""

    status = Status.INSUFFICIENT_DATA


class DegenerateDataError(ConsensusError):
    """Too many consecutive samples produced no usable hypothesis."""

    status = Status.DEGENERATE_DATA


class NoConsensusError(ConsensusError):
    """The iteration budget ran out without accepting any hypothesis."""

    status = Status.NO_CONSENSUS


class ConfigurationError(ValueError):
    """Invalid engine parameters or group partition."""


ERRORS_BY_STATUS = {
    Status.INSUFFICIENT_DATA: InsufficientDataError,
    Status.DEGENERATE_DATA: DegenerateDataError,
    Status.NO_CONSENSUS: NoConsensusError,
}
