"""
Seed Demo Data — Standalone script and pytest helper.

Creates the demo teacher's homework for the demo student and walks each task
through the lifecycle to its demo status, so the student's XP comes from real
submissions rather than hand-written ledger records.

Usage:
    python seed_demo_data.py           # Seed into the configured store
    python seed_demo_data.py --reset   # Clear demo data first
"""

from __future__ import annotations

import logging
import sys

from homework import DELIVERED, NEEDS_FEEDBACK, HomeworkLifecycle, owner_index_key, task_key

logger = logging.getLogger(__name__)

DEMO_TEACHER_ID = "1"
DEMO_STUDENT_ID = "2"

# (task_id, title, description, due_date, target status, grade, feedback)
DEMO_HOMEWORK = [
    ("hw1", "Factors and Multiples", "Solve pages 45-50.", "2024-05-20",
     DELIVERED, 95, "Great work!"),
    ("hw2", "Exponents", "Complete test 3.", "2024-05-25",
     "pending", None, None),
    ("hw3", "Geometry: Triangles", "Exercises 1-10.", "2024-05-18",
     NEEDS_FEEDBACK, None, None),
]


def seed(lifecycle: HomeworkLifecycle) -> dict:
    """Seed demo homework. Already-present tasks are left alone. Returns summary dict."""
    created = 0
    for task_id, title, description, due_date, status, grade, feedback in DEMO_HOMEWORK:
        if lifecycle.store.exists(task_key(task_id)):
            continue
        lifecycle.create_task(
            DEMO_STUDENT_ID, title,
            due_date=due_date, description=description,
            teacher_id=DEMO_TEACHER_ID, task_id=task_id,
        )
        created += 1
        if status == "pending":
            continue
        lifecycle.submit(task_id, DEMO_STUDENT_ID)
        lifecycle.record_review(task_id, status=NEEDS_FEEDBACK)
        if status == DELIVERED:
            lifecycle.record_review(task_id, status=DELIVERED, grade=grade, feedback=feedback)

    logger.info("Seeded %d demo homework tasks", created)
    return {
        "tasks_created": created,
        "student_id": DEMO_STUDENT_ID,
        "teacher_id": DEMO_TEACHER_ID,
    }


def clear_demo(lifecycle: HomeworkLifecycle) -> None:
    """Remove the demo tasks and the student's task index."""
    for task_id, *_ in DEMO_HOMEWORK:
        lifecycle.store.remove(task_key(task_id))
    lifecycle.store.remove(owner_index_key(DEMO_STUDENT_ID))


if __name__ == "__main__":
    from app import create_app
    from extensions import EngineManager

    app = create_app()
    with app.app_context():
        lifecycle = EngineManager.get_homework()
        if "--reset" in sys.argv:
            clear_demo(lifecycle)
            print("[Seed] Demo data cleared.")
        result = seed(lifecycle)
        print(f"[Seed] Done: {result}")
