"""Kitchen task data models."""

from datetime import datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field

from orderflow.models.order import utcnow


class TaskType(str, Enum):
    PREP = "prep"
    COOK = "cook"
    PLATE = "plate"
    DELIVERY = "delivery"
    QUALITY_CHECK = "quality-check"


class TaskStatus(str, Enum):
    """Task status progression."""

    QUEUED = "queued"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_TASK_STATUSES


TERMINAL_TASK_STATUSES = frozenset(
    {TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED}
)
OPEN_TASK_STATUSES = frozenset(
    {TaskStatus.QUEUED, TaskStatus.ASSIGNED, TaskStatus.IN_PROGRESS}
)


class TaskPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        return PRIORITY_RANK[self]


PRIORITY_RANK = {
    TaskPriority.LOW: 0,
    TaskPriority.NORMAL: 1,
    TaskPriority.HIGH: 2,
    TaskPriority.URGENT: 3,
}


class TaskHistoryEntry(BaseModel):
    status: TaskStatus
    changed_at: datetime = Field(default_factory=utcnow)
    actor: str | None = None
    note: str | None = None


class QualityChecks(BaseModel):
    """Checks recorded by staff before a dish leaves the kitchen."""

    temperature_ok: bool | None = None
    presentation_ok: bool | None = None
    allergens_verified: bool | None = None
    portion_ok: bool | None = None
    notes: str | None = None


class Task(BaseModel):
    """A discrete unit of kitchen or delivery work for one order."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    order_id: str
    task_type: TaskType
    status: TaskStatus = TaskStatus.QUEUED
    priority: TaskPriority = TaskPriority.NORMAL
    is_room_service: bool = False
    item_count: int = Field(default=1, ge=1)

    assigned_to: str | None = None
    assigned_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    estimated_minutes: float = 0.0
    estimated_completion_time: datetime | None = None
    actual_completion_time: datetime | None = None

    quality_checks: QualityChecks = Field(default_factory=QualityChecks)
    failure_note: str | None = None

    history: list[TaskHistoryEntry] = Field(default_factory=list)

    sequence: int = 0
    created_at: datetime = Field(default_factory=utcnow)

    def add_history(self, status: TaskStatus, actor: str | None = None, note: str | None = None) -> None:
        """Append a status history entry."""
        self.history.append(TaskHistoryEntry(status=status, actor=actor, note=note))
