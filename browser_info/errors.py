from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from .types import OutcomeKind, StrategyOutcome

if TYPE_CHECKING:
    from .title_guess import TitleGuess


class ErrorKind(Enum):
    NO_WINDOW = "no_window"
    NOT_A_BROWSER = "not_a_browser"
    TIMEOUT = "timeout"
    UNSUPPORTED = "unsupported"
    PROTOCOL_ERROR = "protocol_error"
    ALL_METHODS_EXHAUSTED = "all_methods_exhausted"


_OUTCOME_TO_ERROR = {
    OutcomeKind.NO_WINDOW: ErrorKind.NO_WINDOW,
    OutcomeKind.NOT_A_BROWSER: ErrorKind.NOT_A_BROWSER,
    OutcomeKind.TIMEOUT: ErrorKind.TIMEOUT,
    OutcomeKind.UNSUPPORTED: ErrorKind.UNSUPPORTED,
    OutcomeKind.PROTOCOL_ERROR: ErrorKind.PROTOCOL_ERROR,
}


@dataclass
class ExtractionError(Exception):
    """Terminal failure of an extraction run.

    `outcomes` keeps the ordered per-candidate trail for diagnostics; `guess`
    is only set for ALL_METHODS_EXHAUSTED when title guessing is enabled and
    is never a verified result.
    """

    kind: ErrorKind
    reason: str = ""
    detail: str = ""
    outcomes: list[StrategyOutcome] = field(default_factory=list)
    guess: TitleGuess | None = None

    def __str__(self) -> str:
        msg = self.kind.value
        if self.reason:
            msg += f" ({self.reason})"
        if self.detail:
            msg += f": {self.detail}"
        return msg

    @classmethod
    def from_outcome(cls, outcome: StrategyOutcome, outcomes: list[StrategyOutcome]) -> ExtractionError:
        kind = _OUTCOME_TO_ERROR.get(outcome.kind, ErrorKind.PROTOCOL_ERROR)
        return cls(kind=kind, reason=outcome.reason, detail=outcome.detail, outcomes=list(outcomes))

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "error": True,
            "kind": self.kind.value,
            "reason": self.reason,
            "detail": self.detail,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }
        if self.guess is not None:
            out["guess"] = self.guess.to_dict()
        return out


# Strategy-internal failures. Always converted to a StrategyOutcome before
# leaving the strategy that raised them.


class DevToolsUnavailable(Exception):
    """The debugging endpoint is not listening."""


class DevToolsProtocolError(Exception):
    """The debugging endpoint answered with something we cannot use."""


class ClipboardUnavailable(Exception):
    """The clipboard could not be snapshotted, so it cannot be restored."""


class CollaboratorUnavailable(Exception):
    """No automation collaborator can be run for this platform or browser."""

    def __init__(self, reason: str, detail: str) -> None:
        super().__init__(detail)
        self.reason = reason


__all__ = [
    "ClipboardUnavailable",
    "CollaboratorUnavailable",
    "DevToolsProtocolError",
    "DevToolsUnavailable",
    "ErrorKind",
    "ExtractionError",
]
