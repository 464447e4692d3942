"""
Timeline phase and completion derivation from task rows.
"""

from datetime import timedelta
from uuid import uuid4

import pytest

from tests.conftest import CHECK_IN, CHECK_OUT, booking_event
from turnover.engine.timeline import completion_percentage, derive_phase, generate_turnover_plan
from turnover.models import TaskPriority, TaskStatus, TaskType, TimelinePhase


def _plan_with(statuses: dict[TaskType, TaskStatus]):
    plan = generate_turnover_plan(booking_event(), CHECK_IN - timedelta(days=7))
    tasks = [
        t.model_copy(update={"status": statuses[t.task_type]}) if t.task_type in statuses else t
        for t in plan.tasks
    ]
    return plan.timeline, tasks


@pytest.mark.parametrize(
    "now, statuses, expected",
    [
        (CHECK_IN - timedelta(hours=1), {}, TimelinePhase.PRE_ARRIVAL),
        (CHECK_IN + timedelta(hours=1), {}, TimelinePhase.OCCUPIED),
        (CHECK_OUT - timedelta(hours=1), {TaskType.CHECKOUT: TaskStatus.ASSIGNED}, TimelinePhase.CHECKOUT),
        (CHECK_OUT, {}, TimelinePhase.CHECKOUT),
        (CHECK_OUT, {TaskType.CHECKOUT: TaskStatus.COMPLETED}, TimelinePhase.CLEANING),
        (
            CHECK_OUT,
            {TaskType.CHECKOUT: TaskStatus.COMPLETED, TaskType.CLEANING: TaskStatus.COMPLETED},
            TimelinePhase.INSPECTION,
        ),
        (
            CHECK_OUT,
            {
                TaskType.CHECKOUT: TaskStatus.COMPLETED,
                TaskType.CLEANING: TaskStatus.COMPLETED,
                TaskType.INSPECTION: TaskStatus.APPROVED,
            },
            TimelinePhase.READY,
        ),
        # A merely completed inspection is not approval
        (
            CHECK_OUT,
            {
                TaskType.CHECKOUT: TaskStatus.COMPLETED,
                TaskType.CLEANING: TaskStatus.COMPLETED,
                TaskType.INSPECTION: TaskStatus.COMPLETED,
            },
            TimelinePhase.INSPECTION,
        ),
    ],
)
def test_phase_follows_task_progress(now, statuses, expected):
    timeline, tasks = _plan_with(statuses)
    assert derive_phase(timeline, tasks, now) == expected


def test_maintenance_tasks_do_not_drive_phase():
    timeline, tasks = _plan_with({TaskType.CHECKOUT: TaskStatus.COMPLETED})
    maintenance = tasks[0].model_copy(
        update={
            "task_id": uuid4(),
            "task_type": TaskType.MAINTENANCE,
            "priority": TaskPriority.URGENT,
            "status": TaskStatus.COMPLETED,
            "depends_on": [],
            "triggers": [],
        }
    )

    assert derive_phase(timeline, [maintenance, *tasks], CHECK_OUT) == TimelinePhase.CLEANING


def test_ready_timeline_stays_ready():
    timeline, tasks = _plan_with({})
    ready = timeline.model_copy(update={"current_phase": TimelinePhase.READY})

    assert derive_phase(ready, tasks, CHECK_IN - timedelta(days=1)) == TimelinePhase.READY


def test_completion_excludes_cancelled_tasks():
    _, tasks = _plan_with(
        {
            TaskType.PRE_ARRIVAL_PREP: TaskStatus.COMPLETED,
            TaskType.CHECKIN_INFORMATIONAL: TaskStatus.CANCELLED,
            TaskType.CHECKOUT: TaskStatus.APPROVED,
        }
    )

    assert completion_percentage(tasks) == 50


def test_completion_bounds():
    _, tasks = _plan_with({})
    assert completion_percentage(tasks) == 0
    assert completion_percentage([]) == 0

    _, all_done = _plan_with({t: TaskStatus.COMPLETED for t in TaskType if t != TaskType.MAINTENANCE})
    assert completion_percentage(all_done) == 100


def test_completion_rounds_down():
    _, tasks = _plan_with(
        {
            TaskType.PRE_ARRIVAL_PREP: TaskStatus.COMPLETED,
            TaskType.CHECKIN_INFORMATIONAL: TaskStatus.CANCELLED,
            TaskType.CHECKOUT: TaskStatus.COMPLETED,
            TaskType.CLEANING: TaskStatus.CANCELLED,
        }
    )

    assert completion_percentage(tasks) == 66
