"""Completion time estimates for kitchen tasks."""

from datetime import datetime, timedelta

from orderflow.models.order import utcnow
from orderflow.models.task import TaskType

# Base minutes per task type
BASE_MINUTES: dict[TaskType, int] = {
    TaskType.PREP: 5,
    TaskType.COOK: 15,
    TaskType.PLATE: 3,
    TaskType.DELIVERY: 10,
    TaskType.QUALITY_CHECK: 2,
}
MINUTES_PER_EXTRA_ITEM = 2
ROOM_SERVICE_FACTOR = 0.8


def estimate_minutes(task_type: TaskType, item_count: int, room_service: bool) -> float:
    """
    Estimate how long a task takes.

    Args:
        task_type: Kind of kitchen work
        item_count: Number of items the task covers
        room_service: Room-service work is handled with priority

    Returns:
        Estimated minutes
    """
    minutes = BASE_MINUTES[TaskType(task_type)] + MINUTES_PER_EXTRA_ITEM * max(0, item_count - 1)
    if room_service:
        minutes *= ROOM_SERVICE_FACTOR
    return float(minutes)


def estimate_completion(
    task_type: TaskType,
    item_count: int,
    room_service: bool,
    now: datetime | None = None,
) -> datetime:
    """Estimated completion time for a task created at ``now``."""
    start = now or utcnow()
    return start + timedelta(minutes=estimate_minutes(task_type, item_count, room_service))
