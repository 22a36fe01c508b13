"""
Hierarchical phase access rules.

    guaranteed tier -> guaranteed, waitlist, public
    waitlist tier   -> waitlist, public
    no tier         -> public

Nobody may invest while the presale is upcoming or ended. Both the read-only
validation path and the admission path call evaluate(), so the two can never
disagree.
"""

from dataclasses import dataclass
from enum import Enum

from app.core.phase_clock import Phase


class Tier(str, Enum):
    """Whitelist tier of a wallet."""
    GUARANTEED = "guaranteed"
    WAITLIST = "waitlist"
    NONE = "none"


class EligibilityReason(str, Enum):
    ELIGIBLE = "eligible"
    NOT_STARTED = "not_started"
    ENDED = "ended"
    WAITLIST_TOO_EARLY = "waitlist_too_early"
    NONE_TOO_EARLY = "none_too_early"


REASON_MESSAGES: dict[EligibilityReason, str] = {
    EligibilityReason.ELIGIBLE: "Eligible to invest in the current phase",
    EligibilityReason.NOT_STARTED: "Presale has not started yet",
    EligibilityReason.ENDED: "Presale has ended",
    EligibilityReason.WAITLIST_TOO_EARLY: "Waitlist users must wait for waitlist phase",
    EligibilityReason.NONE_TOO_EARLY: "Public users must wait for public phase",
}

ALLOWED_PHASES: dict[Tier, frozenset[Phase]] = {
    Tier.GUARANTEED: frozenset({Phase.GUARANTEED, Phase.WAITLIST, Phase.PUBLIC}),
    Tier.WAITLIST: frozenset({Phase.WAITLIST, Phase.PUBLIC}),
    Tier.NONE: frozenset({Phase.PUBLIC}),
}


@dataclass(frozen=True, slots=True)
class EligibilityDecision:
    eligible: bool
    reason: EligibilityReason

    @property
    def message(self) -> str:
        return REASON_MESSAGES[self.reason]


def evaluate(tier: Tier, phase: Phase) -> EligibilityDecision:
    """Decide whether a wallet of the given tier may invest in the given phase."""
    if phase == Phase.UPCOMING:
        return EligibilityDecision(False, EligibilityReason.NOT_STARTED)
    if phase == Phase.ENDED:
        return EligibilityDecision(False, EligibilityReason.ENDED)
    if phase in ALLOWED_PHASES[tier]:
        return EligibilityDecision(True, EligibilityReason.ELIGIBLE)
    if tier == Tier.WAITLIST:
        return EligibilityDecision(False, EligibilityReason.WAITLIST_TOO_EARLY)
    return EligibilityDecision(False, EligibilityReason.NONE_TOO_EARLY)


def is_eligible(tier: Tier, phase: Phase) -> bool:
    return evaluate(tier, phase).eligible
