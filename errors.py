"""Error taxonomy for the session & progress engine.

Validation errors are raised to the caller. CorruptState is only ever raised
and handled inside durable_store; callers see the healed default instead.
"""

from __future__ import annotations


class EngineError(Exception):
    """Base class for errors surfaced to engine callers."""

    code = "engine_error"
    http_status = 400


class InvalidAwardAmount(EngineError):
    code = "invalid_award_amount"
    http_status = 400

    def __init__(self, amount) -> None:
        super().__init__(f"XP award must be a non-negative integer, got {amount!r}")
        self.amount = amount


class NotFound(EngineError):
    code = "not_found"
    http_status = 404

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task {task_id!r} does not exist")
        self.task_id = task_id


class Forbidden(EngineError):
    code = "forbidden"
    http_status = 403

    def __init__(self, task_id: str, user_id: str) -> None:
        super().__init__(f"User {user_id!r} does not own task {task_id!r}")
        self.task_id = task_id
        self.user_id = user_id


class InvalidTransition(EngineError):
    code = "invalid_transition"
    http_status = 409

    def __init__(self, task_id: str, current: str, requested: str) -> None:
        super().__init__(f"Task {task_id!r} cannot move from {current!r} to {requested!r}")
        self.task_id = task_id
        self.current = current
        self.requested = requested


class NotSubmittable(InvalidTransition):
    code = "not_submittable"


class TaskExists(EngineError):
    code = "task_exists"
    http_status = 409

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task {task_id!r} already exists")
        self.task_id = task_id


class CorruptState(Exception):
    """A persisted record failed to parse or validate."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Corrupt record at {key!r}: {reason}")
        self.key = key
        self.reason = reason
