"""
Presale phase derivation from wall-clock time.

The phase is never stored: it is recomputed on every call from the configured
windows, so admin changes to the schedule take effect immediately.

Windows are half-open [start, end) intervals and must be contiguous:

    guaranteed.end == waitlist.start and waitlist.end == public.start

Anything before guaranteed.start is "upcoming", anything at or after
public.end is "ended".
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from app.core.errors import ConfigurationInvalid


class Phase(str, Enum):
    """Presale phases, in chronological order."""
    UPCOMING = "upcoming"
    GUARANTEED = "guaranteed"
    WAITLIST = "waitlist"
    PUBLIC = "public"
    ENDED = "ended"


ACTIVE_PHASES = (Phase.GUARANTEED, Phase.WAITLIST, Phase.PUBLIC)

NEXT_PHASE: dict[Phase, Optional[Phase]] = {
    Phase.UPCOMING: Phase.GUARANTEED,
    Phase.GUARANTEED: Phase.WAITLIST,
    Phase.WAITLIST: Phase.PUBLIC,
    Phase.PUBLIC: Phase.ENDED,
    Phase.ENDED: None,
}


@dataclass(frozen=True, slots=True)
class PhaseWindow:
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end


@dataclass(frozen=True, slots=True)
class PhaseWindows:
    guaranteed: PhaseWindow
    waitlist: PhaseWindow
    public: PhaseWindow

    def window(self, phase: Phase) -> PhaseWindow:
        return getattr(self, phase.value)


@dataclass(frozen=True, slots=True)
class PhaseStatus:
    phase: Phase
    next_phase: Optional[Phase]
    next_phase_time: Optional[datetime]
    time_remaining: Optional[timedelta]


def _require_aware(moment: datetime, label: str) -> None:
    if moment.tzinfo is None or moment.utcoffset() is None:
        raise ConfigurationInvalid(f"{label} must be a timezone-aware UTC datetime")


def validate_windows(windows: PhaseWindows) -> None:
    """Raise ConfigurationInvalid unless the windows are well-formed and contiguous."""
    for phase in ACTIVE_PHASES:
        window = windows.window(phase)
        _require_aware(window.start, f"{phase.value}.start")
        _require_aware(window.end, f"{phase.value}.end")
        if window.start >= window.end:
            raise ConfigurationInvalid(
                f"{phase.value} window must start before it ends",
                details={"phase": phase.value},
            )

    if windows.guaranteed.end != windows.waitlist.start:
        raise ConfigurationInvalid(
            "guaranteed window must end exactly when the waitlist window starts",
            details={
                "guaranteed_end": windows.guaranteed.end.isoformat(),
                "waitlist_start": windows.waitlist.start.isoformat(),
            },
        )
    if windows.waitlist.end != windows.public.start:
        raise ConfigurationInvalid(
            "waitlist window must end exactly when the public window starts",
            details={
                "waitlist_end": windows.waitlist.end.isoformat(),
                "public_start": windows.public.start.isoformat(),
            },
        )


def current_phase(windows: PhaseWindows, now: datetime) -> Phase:
    """Map an instant to exactly one presale phase."""
    _require_aware(now, "now")
    if now < windows.guaranteed.start:
        return Phase.UPCOMING
    for phase in ACTIVE_PHASES:
        if windows.window(phase).contains(now):
            return phase
    return Phase.ENDED


def phase_transition_time(windows: PhaseWindows, phase: Phase) -> Optional[datetime]:
    """When the given phase hands over to the next one."""
    if phase == Phase.UPCOMING:
        return windows.guaranteed.start
    if phase == Phase.ENDED:
        return None
    return windows.window(phase).end


def phase_status(windows: PhaseWindows, now: datetime) -> PhaseStatus:
    phase = current_phase(windows, now)
    next_time = phase_transition_time(windows, phase)
    remaining = None
    if next_time is not None:
        remaining = max(timedelta(0), next_time - now)
    return PhaseStatus(
        phase=phase,
        next_phase=NEXT_PHASE[phase],
        next_phase_time=next_time,
        time_remaining=remaining,
    )
