"""
Focus/break session timer.

The timer is a value (``TimerState``) moved between three phases by pure
functions that take the current time as an argument:

    idle --start--> running --pause--> paused --start--> running
    running --complete (tick == 0)--> running (next phase) | idle

Remaining time is never stored while running. Only the anchor (the instant
the running period started, shifted back by any time already spent) is
persisted, and ``tick`` derives the remaining seconds from it, so a
suspended process or a skipped poll cannot make the countdown drift.

``SessionTimer`` wraps the pure functions with persistence through the
durable store and awards focus XP through the gamification ledger.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable, Mapping
from dataclasses import asdict, dataclass, replace
from typing import Any, Optional

from durable_store import DurableStore
from gamification import GamificationLedger

logger = logging.getLogger(__name__)

FOCUS = "focus"
BREAK = "break"
MODES = (FOCUS, BREAK)

FOCUS_SECONDS = 25 * 60
SHORT_BREAK_SECONDS = 5 * 60
LONG_BREAK_SECONDS = 15 * 60
LONG_BREAK_EVERY = 4
FOCUS_BONUS_XP = 25


def timer_key(user_id=None) -> str:
    """``timer`` for a single-client install, ``timer:{user_id}`` when shared."""
    return "timer" if user_id is None else f"timer:{user_id}"


@dataclass(frozen=True)
class TimerSettings:
    focus_seconds: int = FOCUS_SECONDS
    short_break_seconds: int = SHORT_BREAK_SECONDS
    long_break_seconds: int = LONG_BREAK_SECONDS
    long_break_every: int = LONG_BREAK_EVERY
    focus_bonus_xp: int = FOCUS_BONUS_XP
    auto_continue: bool = True

    def default_duration(self, mode: str) -> int:
        return self.focus_seconds if mode == FOCUS else self.short_break_seconds

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> TimerSettings:
        return cls(
            focus_seconds=config.get("FOCUS_SECONDS", FOCUS_SECONDS),
            short_break_seconds=config.get("SHORT_BREAK_SECONDS", SHORT_BREAK_SECONDS),
            long_break_seconds=config.get("LONG_BREAK_SECONDS", LONG_BREAK_SECONDS),
            long_break_every=config.get("LONG_BREAK_EVERY", LONG_BREAK_EVERY),
            focus_bonus_xp=config.get("FOCUS_BONUS_XP", FOCUS_BONUS_XP),
            auto_continue=config.get("TIMER_AUTO_CONTINUE", True),
        )


DEFAULT_SETTINGS = TimerSettings()


@dataclass(frozen=True)
class TimerState:
    is_running: bool = False
    anchor_timestamp: Optional[float] = None  # epoch seconds, set only while running
    duration_seconds: int = FOCUS_SECONDS
    mode: str = FOCUS
    sessions_completed: int = 0
    paused_remaining: Optional[int] = None  # set only while paused

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> TimerState:
        anchor = data.get("anchor_timestamp")
        paused = data.get("paused_remaining")
        return cls(
            is_running=bool(data.get("is_running", False)),
            anchor_timestamp=float(anchor) if anchor is not None else None,
            duration_seconds=int(data.get("duration_seconds", FOCUS_SECONDS)),
            mode=data.get("mode", FOCUS),
            sessions_completed=int(data.get("sessions_completed", 0)),
            paused_remaining=int(paused) if paused is not None else None,
        )


def _is_count(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def valid_state(data: dict) -> bool:
    """Shape check for a persisted timer record."""
    anchor = data.get("anchor_timestamp")
    paused = data.get("paused_remaining")
    duration = data.get("duration_seconds")
    if data.get("mode") not in MODES:
        return False
    if not _is_count(duration) or duration == 0:
        return False
    if not _is_count(data.get("sessions_completed", 0)):
        return False
    if paused is not None and not _is_count(paused):
        return False
    is_running = data.get("is_running", False)
    if not isinstance(is_running, bool):
        return False
    if anchor is not None and (isinstance(anchor, bool) or not isinstance(anchor, (int, float))):
        return False
    return not is_running or anchor is not None


# ── Pure transitions ──────────────────────────────────────

def phase(state: TimerState) -> str:
    if state.is_running:
        return "running"
    if state.paused_remaining is not None:
        return "paused"
    return "idle"


def tick(state: TimerState, now: float) -> int:
    """Seconds left in the current phase. Never mutates anything."""
    if state.is_running:
        elapsed = max(0, math.floor(now - state.anchor_timestamp))
        return max(0, state.duration_seconds - elapsed)
    if state.paused_remaining is not None:
        return state.paused_remaining
    return state.duration_seconds


def start(
    state: TimerState,
    now: float,
    duration_seconds: int | None = None,
    mode: str | None = None,
    settings: TimerSettings = DEFAULT_SETTINGS,
) -> TimerState:
    """Resume a paused phase, or begin a new one.

    With no arguments a paused phase resumes where it stopped. An explicit
    duration or mode always begins a fresh phase (quick start), discarding
    any paused remainder. Starting a running timer returns it unchanged.
    """
    if state.is_running:
        return state

    if mode is not None and mode not in MODES:
        raise ValueError(f"mode must be one of {MODES}, got {mode!r}")
    if duration_seconds is not None and (
        isinstance(duration_seconds, bool) or not isinstance(duration_seconds, int) or duration_seconds <= 0
    ):
        raise ValueError(f"duration_seconds must be a positive integer, got {duration_seconds!r}")

    fresh = duration_seconds is not None or mode is not None
    if state.paused_remaining is not None and not fresh:
        spent = state.duration_seconds - state.paused_remaining
        return replace(state, is_running=True, anchor_timestamp=now - spent, paused_remaining=None)

    new_mode = mode or state.mode
    if duration_seconds is None:
        duration_seconds = (
            state.duration_seconds if new_mode == state.mode else settings.default_duration(new_mode)
        )
    return replace(
        state,
        is_running=True,
        anchor_timestamp=now,
        duration_seconds=duration_seconds,
        mode=new_mode,
        paused_remaining=None,
    )


def pause(state: TimerState, now: float) -> TimerState:
    if not state.is_running:
        return state
    return replace(
        state,
        is_running=False,
        anchor_timestamp=None,
        paused_remaining=tick(state, now),
    )


def complete(
    state: TimerState,
    now: float,
    settings: TimerSettings = DEFAULT_SETTINGS,
) -> tuple[TimerState, int]:
    """Advance past a finished phase. Returns (next state, XP to award).

    Only acts while running with nothing left on the clock, so a second call
    for the same finished phase sees the already-advanced state and returns
    it untouched with zero XP.
    """
    if not state.is_running or tick(state, now) > 0:
        return state, 0

    if state.mode == FOCUS:
        sessions = state.sessions_completed + 1
        next_mode = BREAK
        if settings.long_break_every > 0 and sessions % settings.long_break_every == 0:
            next_duration = settings.long_break_seconds
        else:
            next_duration = settings.short_break_seconds
        xp = settings.focus_bonus_xp
    else:
        sessions = state.sessions_completed
        next_mode = FOCUS
        next_duration = settings.focus_seconds
        xp = 0

    next_state = TimerState(
        is_running=settings.auto_continue,
        anchor_timestamp=now if settings.auto_continue else None,
        duration_seconds=next_duration,
        mode=next_mode,
        sessions_completed=sessions,
        paused_remaining=None,
    )
    return next_state, xp


def reset(state: TimerState) -> TimerState:
    """Back to idle for the current phase; mode and session count are kept."""
    return replace(state, is_running=False, anchor_timestamp=None, paused_remaining=None)


def switch_mode(state: TimerState, mode: str, settings: TimerSettings = DEFAULT_SETTINGS) -> TimerState:
    """Select a mode while stopped. A running timer is left alone."""
    if mode not in MODES:
        raise ValueError(f"mode must be one of {MODES}, got {mode!r}")
    if state.is_running:
        return state
    return replace(
        state,
        anchor_timestamp=None,
        paused_remaining=None,
        duration_seconds=settings.default_duration(mode),
        mode=mode,
    )


# ── Persisted service ─────────────────────────────────────

class SessionTimer:
    """Loads the timer from the store, applies one transition, saves it back."""

    def __init__(
        self,
        store: DurableStore,
        ledger: GamificationLedger,
        user_id,
        key: str = "timer",
        settings: TimerSettings = DEFAULT_SETTINGS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.ledger = ledger
        self.user_id = user_id
        self.key = key
        self.settings = settings
        self._clock = clock

    def _default(self) -> dict:
        return TimerState(duration_seconds=self.settings.focus_seconds).to_dict()

    def state(self) -> TimerState:
        return TimerState.from_dict(self.store.read(self.key, self._default(), validator=valid_state))

    def _save(self, state: TimerState) -> TimerState:
        self.store.write(self.key, state.to_dict())
        return state

    def start(self, duration_seconds: int | None = None, mode: str | None = None) -> TimerState:
        current = self.state()
        new = start(current, self._clock(), duration_seconds, mode, self.settings)
        if new is not current:
            logger.debug("Timer %s started: mode=%s duration=%ds", self.key, new.mode, new.duration_seconds)
            self._save(new)
        return new

    def pause(self) -> TimerState:
        current = self.state()
        new = pause(current, self._clock())
        if new is not current:
            logger.debug("Timer %s paused with %ds left", self.key, new.paused_remaining)
            self._save(new)
        return new

    def tick(self) -> int:
        return tick(self.state(), self._clock())

    def complete(self) -> tuple[TimerState, int]:
        """Finish the current phase if it has run out. Returns (state, XP awarded)."""
        current = self.state()
        new, xp = complete(current, self._clock(), self.settings)
        if new is current:
            return current, 0

        self._save(new)
        logger.info(
            "Timer %s completed %s phase (sessions=%d), next=%s %ds",
            self.key, current.mode, new.sessions_completed, new.mode, new.duration_seconds,
        )
        if xp and self.user_id is not None:
            self.ledger.award(self.user_id, xp, reason="focus_session")
        return new, xp

    def poll(self) -> dict:
        """The host poller's entry point: report remaining time, completing a finished phase."""
        current = self.state()
        awarded = 0
        if current.is_running and tick(current, self._clock()) == 0:
            current, awarded = self.complete()
        return {
            "state": current,
            "phase": phase(current),
            "remaining_seconds": tick(current, self._clock()),
            "xp_awarded": awarded,
        }

    def reset(self) -> TimerState:
        return self._save(reset(self.state()))

    def switch_mode(self, mode: str) -> TimerState:
        return self._save(switch_mode(self.state(), mode, self.settings))
