"""
Homework Lifecycle — status machine for assigned tasks.

    pending --submit (owner)--> delivered --review--> needsFeedback
    needsFeedback --review--> needsRevision | delivered
    needsRevision --resubmit (owner)--> delivered

Only ``submit`` awards XP, and only on the pending -> delivered transition,
so a retried request or a second click cannot grant the bonus twice.

Tasks are stored under ``task:{task_id}`` with a per-owner index of ids at
``tasks:{owner_id}``.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Optional

from durable_store import DurableStore
from errors import Forbidden, InvalidTransition, NotFound, NotSubmittable, TaskExists
from gamification import GamificationLedger

logger = logging.getLogger(__name__)

PENDING = "pending"
DELIVERED = "delivered"
NEEDS_FEEDBACK = "needsFeedback"
NEEDS_REVISION = "needsRevision"
STATUSES = (PENDING, DELIVERED, NEEDS_FEEDBACK, NEEDS_REVISION)

SUBMIT_BONUS = 50

# Reviewer-driven moves. Owner-driven moves are submit and resubmit.
REVIEW_TRANSITIONS = {
    DELIVERED: {NEEDS_FEEDBACK},
    NEEDS_FEEDBACK: {NEEDS_REVISION, DELIVERED},
    NEEDS_REVISION: set(),
    PENDING: set(),
}


def task_key(task_id: str) -> str:
    return f"task:{task_id}"


def owner_index_key(owner_id) -> str:
    return f"tasks:{owner_id}"


@dataclass
class Task:
    id: str
    owner_id: str
    title: str
    status: str = PENDING
    due_date: str = ""  # ISO date
    grade: Optional[float] = None
    feedback: Optional[str] = None
    description: str = ""
    teacher_id: str = ""
    submission_url: str = ""
    submitted_at: str = ""
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> Task:
        known = cls.__dataclass_fields__
        return cls(**{k: v for k, v in data.items() if k in known})


def _valid_task(data: dict) -> bool:
    return (
        isinstance(data.get("id"), str)
        and isinstance(data.get("owner_id"), str)
        and isinstance(data.get("title"), str)
        and data.get("status") in STATUSES
    )


class HomeworkLifecycle:
    """Owner submissions and reviewer updates for homework tasks."""

    def __init__(
        self,
        store: DurableStore,
        ledger: GamificationLedger,
        submit_bonus: int = SUBMIT_BONUS,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.ledger = ledger
        self.submit_bonus = submit_bonus
        self._now = now

    # ── Storage ──

    def _load(self, task_id: str) -> Task:
        key = task_key(task_id)
        if not self.store.exists(key):
            raise NotFound(task_id)
        data = self.store.read(key, {}, validator=_valid_task)
        if not data:
            # Corrupt record healed to an empty placeholder; nothing to recover.
            self.store.remove(key)
            raise NotFound(task_id)
        return Task.from_dict(data)

    def _save(self, task: Task) -> None:
        self.store.write(task_key(task.id), task.to_dict())

    # ── Authoring ──

    def create_task(
        self,
        owner_id,
        title: str,
        due_date: str = "",
        description: str = "",
        teacher_id="",
        task_id: str | None = None,
    ) -> Task:
        """Create a pending task. Called by the authoring side, not by owners.

        An explicit ``task_id`` that is already taken raises TaskExists rather
        than resetting that task to pending.
        """
        if task_id and self.store.exists(task_key(task_id)):
            raise TaskExists(task_id)
        task = Task(
            id=task_id or f"hw_{secrets.token_hex(4)}",
            owner_id=str(owner_id),
            title=title,
            due_date=due_date,
            description=description,
            teacher_id=str(teacher_id),
            created_at=self._now().isoformat(),
        )
        self._save(task)

        index_key = owner_index_key(task.owner_id)
        ids = self.store.read(index_key, [])
        if task.id not in ids:
            ids.append(task.id)
            self.store.write(index_key, ids)

        logger.info("Created task %s for owner %s", task.id, task.owner_id)
        return task

    # ── Queries ──

    def get(self, task_id: str) -> Task:
        return self._load(task_id)

    def list_for_owner(self, owner_id) -> list[Task]:
        tasks = []
        for task_id in self.store.read(owner_index_key(owner_id), []):
            try:
                tasks.append(self._load(task_id))
            except NotFound:
                logger.warning("Owner index %s references missing task %s", owner_id, task_id)
        return tasks

    # ── Owner transitions ──

    def submit(self, task_id: str, owner_id, submission_url: str | None = None) -> tuple[Task, int]:
        """pending -> delivered, then award the submission bonus. Returns (task, XP awarded)."""
        task = self._load(task_id)
        if task.owner_id != str(owner_id):
            raise Forbidden(task_id, str(owner_id))
        if task.status != PENDING:
            raise NotSubmittable(task_id, task.status, DELIVERED)

        task.status = DELIVERED
        task.submission_url = submission_url or "uploaded"
        task.submitted_at = self._now().isoformat()
        self._save(task)

        self.ledger.award(task.owner_id, self.submit_bonus, reason="homework_submit")
        logger.info("Task %s delivered by %s (+%d XP)", task_id, task.owner_id, self.submit_bonus)
        return task, self.submit_bonus

    def resubmit(self, task_id: str, owner_id, submission_url: str | None = None) -> Task:
        """needsRevision -> delivered. Revisions do not earn XP again."""
        task = self._load(task_id)
        if task.owner_id != str(owner_id):
            raise Forbidden(task_id, str(owner_id))
        if task.status != NEEDS_REVISION:
            raise NotSubmittable(task_id, task.status, DELIVERED)

        task.status = DELIVERED
        if submission_url:
            task.submission_url = submission_url
        task.submitted_at = self._now().isoformat()
        self._save(task)
        logger.info("Task %s revision delivered by %s", task_id, task.owner_id)
        return task

    # ── Reviewer input ──

    def record_review(
        self,
        task_id: str,
        status: str | None = None,
        grade: float | None = None,
        feedback: str | None = None,
    ) -> Task:
        """Apply a reviewer's decision. ``status=None`` only updates grade/feedback."""
        task = self._load(task_id)
        if status is not None and status != task.status:
            if status not in REVIEW_TRANSITIONS.get(task.status, set()):
                raise InvalidTransition(task_id, task.status, status)
            task.status = status
        elif task.status == PENDING:
            raise InvalidTransition(task_id, task.status, status or task.status)

        if grade is not None:
            task.grade = grade
        if feedback is not None:
            task.feedback = feedback
        self._save(task)
        logger.info("Task %s reviewed: status=%s grade=%s", task_id, task.status, task.grade)
        return task
