"""
Gamification Ledger — experience, level and daily streak per user.

Records live in the durable store under ``gamification:{user_id}``. Level is
never stored on its own: it is derived from experience by ``level_for`` every
time a record is read, so the two cannot drift apart.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date

from durable_store import DurableStore
from errors import InvalidAwardAmount

logger = logging.getLogger(__name__)

LEVEL_STEP = 1000


def level_for(experience: int, step: int = LEVEL_STEP) -> int:
    """Level = floor(experience / step) + 1"""
    return experience // step + 1


def gamification_key(user_id) -> str:
    return f"gamification:{user_id}"


@dataclass
class GamificationRecord:
    experience: int = 0
    streak: int = 0
    last_active_date: str = ""  # ISO date, local timezone
    longest_streak: int = 0
    level_step: int = field(default=LEVEL_STEP, repr=False, compare=False)

    @property
    def level(self) -> int:
        return level_for(self.experience, self.level_step)

    @property
    def xp_for_current_level(self) -> int:
        """XP at which the current level started."""
        return (self.level - 1) * self.level_step

    @property
    def xp_for_next_level(self) -> int:
        return self.level * self.level_step

    @property
    def xp_progress_pct(self) -> int:
        """Percentage progress toward next level."""
        return min(100, int((self.experience - self.xp_for_current_level) / self.level_step * 100))

    def to_dict(self) -> dict:
        return {
            "experience": self.experience,
            "level": self.level,
            "streak": self.streak,
            "last_active_date": self.last_active_date,
            "longest_streak": self.longest_streak,
        }

    @classmethod
    def from_dict(cls, data: dict, level_step: int = LEVEL_STEP) -> GamificationRecord:
        # A stored "level" is ignored; it is always recomputed from experience.
        return cls(
            experience=int(data.get("experience", 0)),
            streak=int(data.get("streak", 0)),
            last_active_date=str(data.get("last_active_date", "")),
            longest_streak=int(data.get("longest_streak", 0)),
            level_step=level_step,
        )


def _is_count(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _valid_record(data: dict) -> bool:
    return (
        _is_count(data.get("experience", 0))
        and _is_count(data.get("streak", 0))
        and _is_count(data.get("longest_streak", 0))
        and isinstance(data.get("last_active_date", ""), str)
    )


def next_streak(streak: int, last_active_date: str, today: date) -> int:
    """Streak after activity on ``today``.

    Active yesterday -> +1, already active today -> unchanged, anything else -> 1.
    A last-active date in the future (clock moved back) counts as today.
    """
    try:
        last = date.fromisoformat(last_active_date)
    except (TypeError, ValueError):
        return 1
    gap = (today - last).days
    if gap <= 0:
        return max(streak, 1)
    if gap == 1:
        return streak + 1
    return 1


class GamificationLedger:
    """Awards XP and keeps level/streak consistent with it."""

    def __init__(
        self,
        store: DurableStore,
        level_step: int = LEVEL_STEP,
        today: Callable[[], date] = date.today,
    ) -> None:
        if isinstance(level_step, bool) or not isinstance(level_step, int) or level_step <= 0:
            logger.warning("Ignoring invalid level step %r, using %d", level_step, LEVEL_STEP)
            level_step = LEVEL_STEP
        self.store = store
        self.level_step = level_step
        self._today = today

    def _default(self) -> dict:
        return GamificationRecord(level_step=self.level_step).to_dict()

    def get(self, user_id) -> GamificationRecord:
        data = self.store.read(gamification_key(user_id), self._default(), validator=_valid_record)
        return GamificationRecord.from_dict(data, self.level_step)

    def award(self, user_id, amount: int, reason: str = "") -> GamificationRecord:
        """Add ``amount`` XP and refresh the daily streak.

        Zero is allowed and only refreshes the streak. Negative or non-integer
        amounts raise InvalidAwardAmount before anything is read or written.
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise InvalidAwardAmount(amount)

        record = self.get(user_id)
        old_level = record.level
        today = self._today()

        record.experience += amount
        record.streak = next_streak(record.streak, record.last_active_date, today)
        record.last_active_date = today.isoformat()
        record.longest_streak = max(record.longest_streak, record.streak)

        self.store.write(gamification_key(user_id), record.to_dict())

        logger.info(
            "Awarded %d XP to user %s%s: total=%d level=%d streak=%d",
            amount, user_id, f" ({reason})" if reason else "",
            record.experience, record.level, record.streak,
        )
        if record.level > old_level:
            logger.info("User %s reached level %d", user_id, record.level)
        return record

    def reset(self, user_id) -> GamificationRecord:
        """Admin reset back to defaults — the only way experience decreases."""
        record = GamificationRecord(level_step=self.level_step)
        self.store.write(gamification_key(user_id), record.to_dict())
        logger.warning("Gamification record for user %s reset by admin", user_id)
        return record
