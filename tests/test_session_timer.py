"""Tests for session_timer.py — pure transitions and the persisted service."""

from __future__ import annotations

import pytest

import session_timer as st
from session_timer import BREAK, FOCUS, SessionTimer, TimerSettings, TimerState

T0 = 1_700_000_000.0


class TestPureTransitions:
    def test_initial_state_is_idle_focus(self):
        state = TimerState()
        assert st.phase(state) == "idle"
        assert state.mode == FOCUS
        assert st.tick(state, T0) == 1500

    def test_start_from_idle(self):
        state = st.start(TimerState(), T0, 1500, FOCUS)
        assert state.is_running
        assert state.anchor_timestamp == T0
        assert st.tick(state, T0 + 60) == 1440

    def test_start_defaults(self):
        state = st.start(TimerState(), T0)
        assert state.duration_seconds == 1500
        assert state.mode == FOCUS

    def test_start_other_mode_uses_its_default_duration(self):
        state = st.start(TimerState(), T0, mode=BREAK)
        assert state.duration_seconds == 300

    def test_pause_resume_round_trip(self):
        state = st.start(TimerState(), T0, 1500, FOCUS)
        paused = st.pause(state, T0 + 400)
        assert st.phase(paused) == "paused"
        assert paused.paused_remaining == 1100
        assert paused.anchor_timestamp is None

        resumed = st.start(paused, T0 + 1000)
        assert resumed.is_running
        assert st.tick(resumed, T0 + 1000) == 1100
        assert st.tick(resumed, T0 + 1100) == 1000

    def test_paused_tick_is_frozen(self):
        paused = st.pause(st.start(TimerState(), T0, 1500, FOCUS), T0 + 400)
        assert st.tick(paused, T0 + 99999) == 1100

    def test_pause_when_not_running_is_noop(self):
        state = TimerState()
        assert st.pause(state, T0) is state

    def test_start_when_running_is_noop(self):
        state = st.start(TimerState(), T0)
        assert st.start(state, T0 + 10, 60, BREAK) is state

    def test_quick_start_discards_paused_phase(self):
        paused = st.pause(st.start(TimerState(), T0, 1500, FOCUS), T0 + 400)
        fresh = st.start(paused, T0 + 500, 45 * 60, FOCUS)
        assert st.tick(fresh, T0 + 500) == 2700
        assert fresh.paused_remaining is None

    def test_tick_is_pure(self):
        state = st.start(TimerState(), T0, 100, FOCUS)
        before = state.to_dict()
        st.tick(state, T0 + 50)
        st.tick(state, T0 + 50)
        assert state.to_dict() == before

    def test_tick_floors_at_zero(self):
        state = st.start(TimerState(), T0, 100, FOCUS)
        assert st.tick(state, T0 + 5000) == 0

    def test_tick_survives_long_suspension(self):
        state = st.start(TimerState(), T0, 1500, FOCUS)
        # No polls at all for 20 minutes; elapsed time is still exact.
        assert st.tick(state, T0 + 1200) == 300

    def test_clock_moving_backwards_never_exceeds_duration(self):
        state = st.start(TimerState(), T0, 100, FOCUS)
        assert st.tick(state, T0 - 30) == 100

    @pytest.mark.parametrize("duration", [0, -5, 1.5, True, "60"])
    def test_start_rejects_bad_duration(self, duration):
        with pytest.raises(ValueError):
            st.start(TimerState(), T0, duration, FOCUS)

    def test_start_rejects_bad_mode(self):
        with pytest.raises(ValueError):
            st.start(TimerState(), T0, 60, "nap")

    def test_complete_before_zero_is_noop(self):
        state = st.start(TimerState(), T0, 100, FOCUS)
        new, xp = st.complete(state, T0 + 99)
        assert new is state
        assert xp == 0

    def test_complete_when_idle_is_noop(self):
        state = TimerState()
        new, xp = st.complete(state, T0)
        assert new is state and xp == 0

    def test_focus_completion_auto_continues_into_break(self):
        state = st.start(TimerState(), T0, 1500, FOCUS)
        new, xp = st.complete(state, T0 + 1500)
        assert xp == 25
        assert new.mode == BREAK
        assert new.is_running
        assert new.anchor_timestamp == T0 + 1500
        assert new.duration_seconds == 300
        assert new.sessions_completed == 1

    def test_break_completion_returns_to_focus_without_xp(self):
        state = st.start(TimerState(), T0, 300, BREAK)
        new, xp = st.complete(state, T0 + 300)
        assert xp == 0
        assert new.mode == FOCUS
        assert new.duration_seconds == 1500
        assert new.sessions_completed == 0

    def test_complete_twice_awards_once(self):
        state = st.start(TimerState(), T0, 1500, FOCUS)
        first, xp1 = st.complete(state, T0 + 1500)
        second, xp2 = st.complete(first, T0 + 1500)
        assert (xp1, xp2) == (25, 0)
        assert second is first

    def test_every_fourth_focus_gets_long_break(self):
        state = TimerState()
        now = T0
        breaks = []
        for _ in range(8):
            state = st.start(st.reset(state), now, mode=FOCUS) if not state.is_running else state
            now += state.duration_seconds
            state, _ = st.complete(state, now)
            assert state.mode == BREAK
            breaks.append(state.duration_seconds)
            now += state.duration_seconds
            state, _ = st.complete(state, now)
            assert state.mode == FOCUS
        assert breaks == [300, 300, 300, 900, 300, 300, 300, 900]

    def test_without_auto_continue_goes_idle(self):
        settings = TimerSettings(auto_continue=False)
        state = st.start(TimerState(), T0, 1500, FOCUS)
        new, xp = st.complete(state, T0 + 1500, settings)
        assert xp == 25
        assert st.phase(new) == "idle"
        assert new.mode == BREAK
        assert st.tick(new, T0 + 2000) == 300

    def test_reset_keeps_mode_and_sessions(self):
        state = TimerState(mode=BREAK, duration_seconds=300, sessions_completed=3)
        running = st.start(state, T0)
        cleared = st.reset(running)
        assert st.phase(cleared) == "idle"
        assert cleared.mode == BREAK
        assert cleared.sessions_completed == 3

    def test_switch_mode(self):
        state = st.switch_mode(TimerState(), BREAK)
        assert state.mode == BREAK
        assert state.duration_seconds == 300

    def test_switch_mode_ignored_while_running(self):
        running = st.start(TimerState(), T0)
        assert st.switch_mode(running, BREAK) is running

    def test_round_trip_dict(self):
        state = st.pause(st.start(TimerState(), T0, 1500, FOCUS), T0 + 10)
        assert TimerState.from_dict(state.to_dict()) == state


class TestSessionTimerService:
    def test_state_persists_across_instances(self, store, ledger, clock, timer):
        timer.start(1500, FOCUS)
        clock.advance(400)
        other = SessionTimer(store, ledger, "u1", clock=clock)
        assert other.tick() == 1100

    def test_pause_resume_remaining(self, timer, clock):
        timer.start(1500, FOCUS)
        clock.advance(400)
        paused = timer.pause()
        assert paused.paused_remaining == 1100
        timer.start()
        clock.advance(100)
        assert timer.tick() == 1000

    def test_tick_does_not_write(self, timer, store, clock):
        timer.start(100, FOCUS)
        before = dict(store._data)
        clock.advance(50)
        timer.tick()
        assert store._data == before

    def test_focus_completion_awards_once(self, timer, ledger, clock):
        timer.start(1500, FOCUS)
        clock.advance(1500)
        assert timer.tick() == 0
        _, xp1 = timer.complete()
        _, xp2 = timer.complete()
        assert (xp1, xp2) == (25, 0)
        assert ledger.get("u1").experience == 25

    def test_two_pollers_award_once(self, store, ledger, clock):
        a = SessionTimer(store, ledger, "u1", clock=clock)
        b = SessionTimer(store, ledger, "u1", clock=clock)
        a.start(60, FOCUS)
        clock.advance(61)
        ra = a.poll()
        rb = b.poll()
        assert ra["xp_awarded"] + rb["xp_awarded"] == 25
        assert ledger.get("u1").experience == 25

    def test_break_completion_awards_nothing(self, timer, ledger, clock):
        timer.start(300, BREAK)
        clock.advance(300)
        _, xp = timer.complete()
        assert xp == 0
        assert ledger.get("u1").experience == 0

    def test_poll_reports_remaining(self, timer, clock):
        timer.start(100, FOCUS)
        clock.advance(30)
        result = timer.poll()
        assert result["remaining_seconds"] == 70
        assert result["phase"] == "running"
        assert result["xp_awarded"] == 0

    def test_poll_completes_and_rolls_over(self, timer, clock):
        timer.start(100, FOCUS)
        clock.advance(500)
        result = timer.poll()
        assert result["xp_awarded"] == 25
        assert result["state"].mode == BREAK
        assert result["remaining_seconds"] == 300

    def test_corrupt_timer_record_heals(self, timer, store):
        store._data["timer"] = '{"is_running": true, "anchor_timestamp": null, "mode": "focus", "duration_seconds": 10}'
        state = timer.state()
        assert st.phase(state) == "idle"
        assert state.duration_seconds == 1500

    @pytest.mark.parametrize("record", [
        {"is_running": False, "anchor_timestamp": "abc", "mode": "focus", "duration_seconds": 1500},
        {"is_running": "false", "anchor_timestamp": 100.0, "mode": "focus", "duration_seconds": 1500},
        {"is_running": False, "anchor_timestamp": True, "mode": "focus", "duration_seconds": 1500, "paused_remaining": 60},
    ])
    def test_malformed_anchor_or_flag_heals(self, timer, store, record):
        store.write("timer", record)
        assert timer.tick() == 1500
        assert st.phase(timer.state()) == "idle"
        assert timer.start().is_running

    def test_settings_from_config(self):
        settings = TimerSettings.from_config({"FOCUS_SECONDS": 60, "TIMER_AUTO_CONTINUE": False})
        assert settings.focus_seconds == 60
        assert settings.short_break_seconds == 300
        assert settings.auto_continue is False

    def test_timer_key(self):
        assert st.timer_key() == "timer"
        assert st.timer_key(7) == "timer:7"

    def test_reset_and_switch_mode_persist(self, timer, store, ledger, clock):
        timer.start(100, FOCUS)
        timer.reset()
        timer.switch_mode(BREAK)
        other = SessionTimer(store, ledger, "u1", clock=clock)
        assert other.state().mode == BREAK
        assert other.tick() == 300
