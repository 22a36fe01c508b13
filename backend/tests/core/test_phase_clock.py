"""
Tests for phase derivation.

Invariants covered:
  - every instant maps to exactly one phase
  - windows are half-open: start belongs to the phase, end to the next one
  - malformed windows (gaps, overlaps, inverted, naive) are rejected
  - time remaining never goes negative and is absent once ended
"""

from datetime import datetime, timedelta, timezone

import pytest

from app.core.errors import ConfigurationInvalid
from app.core.phase_clock import (
    Phase,
    PhaseWindow,
    PhaseWindows,
    current_phase,
    phase_status,
    validate_windows,
)

UTC = timezone.utc
G_START = datetime(2025, 6, 12, 14, 0, tzinfo=UTC)
W_START = datetime(2025, 6, 12, 15, 0, tzinfo=UTC)
P_START = datetime(2025, 6, 13, 14, 0, tzinfo=UTC)
P_END = datetime(2025, 6, 20, 14, 0, tzinfo=UTC)

WINDOWS = PhaseWindows(
    guaranteed=PhaseWindow(G_START, W_START),
    waitlist=PhaseWindow(W_START, P_START),
    public=PhaseWindow(P_START, P_END),
)


# ─── current_phase ─────────────────────────────────────────────────


@pytest.mark.parametrize(
    "moment, expected",
    [
        (G_START - timedelta(days=1), Phase.UPCOMING),
        (G_START - timedelta(microseconds=1), Phase.UPCOMING),
        (G_START, Phase.GUARANTEED),
        (G_START + timedelta(minutes=30), Phase.GUARANTEED),
        (W_START - timedelta(microseconds=1), Phase.GUARANTEED),
        (W_START, Phase.WAITLIST),
        (P_START - timedelta(microseconds=1), Phase.WAITLIST),
        (P_START, Phase.PUBLIC),
        (P_END - timedelta(microseconds=1), Phase.PUBLIC),
        (P_END, Phase.ENDED),
        (P_END + timedelta(days=365), Phase.ENDED),
    ],
)
def test_current_phase_boundaries(moment, expected):
    assert current_phase(WINDOWS, moment) == expected


def test_current_phase_accepts_non_utc_offsets():
    plus_two = timezone(timedelta(hours=2))
    # 16:30 at +02:00 is 14:30 UTC
    moment = datetime(2025, 6, 12, 16, 30, tzinfo=plus_two)
    assert current_phase(WINDOWS, moment) == Phase.GUARANTEED


def test_current_phase_rejects_naive_now():
    with pytest.raises(ConfigurationInvalid):
        current_phase(WINDOWS, datetime(2025, 6, 12, 14, 30))


# ─── validate_windows ──────────────────────────────────────────────


def test_validate_windows_accepts_contiguous_schedule():
    validate_windows(WINDOWS)


def test_validate_windows_rejects_gap():
    gapped = PhaseWindows(
        guaranteed=PhaseWindow(G_START, W_START),
        waitlist=PhaseWindow(W_START + timedelta(minutes=5), P_START),
        public=PhaseWindow(P_START, P_END),
    )
    with pytest.raises(ConfigurationInvalid):
        validate_windows(gapped)


def test_validate_windows_rejects_overlap():
    overlapping = PhaseWindows(
        guaranteed=PhaseWindow(G_START, W_START),
        waitlist=PhaseWindow(W_START, P_START),
        public=PhaseWindow(P_START - timedelta(hours=1), P_END),
    )
    with pytest.raises(ConfigurationInvalid):
        validate_windows(overlapping)


def test_validate_windows_rejects_inverted_window():
    inverted = PhaseWindows(
        guaranteed=PhaseWindow(W_START, G_START),
        waitlist=PhaseWindow(G_START, P_START),
        public=PhaseWindow(P_START, P_END),
    )
    with pytest.raises(ConfigurationInvalid):
        validate_windows(inverted)


def test_validate_windows_rejects_naive_datetimes():
    naive = PhaseWindows(
        guaranteed=PhaseWindow(G_START.replace(tzinfo=None), W_START),
        waitlist=PhaseWindow(W_START, P_START),
        public=PhaseWindow(P_START, P_END),
    )
    with pytest.raises(ConfigurationInvalid):
        validate_windows(naive)


# ─── phase_status ──────────────────────────────────────────────────


def test_phase_status_before_start_counts_down_to_guaranteed():
    status = phase_status(WINDOWS, G_START - timedelta(minutes=10))
    assert status.phase == Phase.UPCOMING
    assert status.next_phase == Phase.GUARANTEED
    assert status.next_phase_time == G_START
    assert status.time_remaining == timedelta(minutes=10)


def test_phase_status_in_waitlist_points_at_public():
    status = phase_status(WINDOWS, W_START + timedelta(hours=1))
    assert status.phase == Phase.WAITLIST
    assert status.next_phase == Phase.PUBLIC
    assert status.next_phase_time == P_START
    assert status.time_remaining == P_START - (W_START + timedelta(hours=1))


def test_phase_status_public_points_at_end():
    status = phase_status(WINDOWS, P_START)
    assert status.next_phase == Phase.ENDED
    assert status.next_phase_time == P_END


def test_phase_status_when_ended_has_no_next_phase():
    status = phase_status(WINDOWS, P_END + timedelta(days=1))
    assert status.phase == Phase.ENDED
    assert status.next_phase is None
    assert status.next_phase_time is None
    assert status.time_remaining is None
