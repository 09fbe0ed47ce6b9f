"""Kitchen task queue - claim, advance and priority ordering of kitchen work."""

from typing import Any

from orderflow.errors import (
    AlreadyClaimedError,
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    InvalidStaffError,
    InvalidStateError,
    InvalidStatusError,
    NotFoundError,
)
from orderflow.models.order import utcnow
from orderflow.models.task import (
    QualityChecks,
    Task,
    TaskPriority,
    TaskStatus,
    TaskType,
)
from orderflow.state.tasks import TaskRepository
from orderflow.utils.logging import TransitionLogger
from orderflow.workflow.eta import estimate_completion, estimate_minutes
from orderflow.workflow.notifications import (
    KITCHEN_AUDIENCE,
    NotificationGateway,
    notify_safely,
    staff_audience,
)

SYSTEM_ACTOR = "system"

# Staff-driven transitions; cancellation is reserved for the system.
TASK_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.QUEUED: {TaskStatus.FAILED, TaskStatus.CANCELLED},
    TaskStatus.ASSIGNED: {TaskStatus.IN_PROGRESS, TaskStatus.FAILED, TaskStatus.CANCELLED},
    TaskStatus.IN_PROGRESS: {TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED},
}


def pending_sort_key(task: Task) -> tuple:
    """Urgent first, room service first within a tier, then FIFO."""
    return (-task.priority.rank, not task.is_room_service, task.created_at, task.sequence)


class TaskQueue:
    """
    Owns kitchen tasks and their assignment.

    Responsibilities:
    - Create tasks with priority and ETA
    - Race-safe claim of queued tasks by staff
    - Guarded status transitions by the task holder
    - Priority-ordered view for staff dashboards
    """

    def __init__(self, tasks: TaskRepository, notifier: NotificationGateway):
        self.tasks = tasks
        self.notifier = notifier
        self.logger = TransitionLogger("task_queue")

    async def enqueue(
        self,
        order_id: str,
        task_type: TaskType,
        room_service: bool,
        item_count: int = 1,
    ) -> Task:
        """
        Add a task to the queue.

        Args:
            order_id: Owning order
            task_type: Kind of kitchen work
            room_service: Room-service tasks are always urgent
            item_count: Items covered by the task, drives the ETA

        Returns:
            The queued task
        """
        item_count = max(1, item_count)
        now = utcnow()

        task = Task(
            order_id=order_id,
            task_type=task_type,
            priority=TaskPriority.URGENT if room_service else TaskPriority.NORMAL,
            is_room_service=room_service,
            item_count=item_count,
            estimated_minutes=estimate_minutes(task_type, item_count, room_service),
            estimated_completion_time=estimate_completion(task_type, item_count, room_service, now),
            created_at=now,
        )
        task.add_history(TaskStatus.QUEUED, actor=SYSTEM_ACTOR)
        await self.tasks.create(task)

        self.logger.log_transition(
            "task", task.id, None, task.status.value,
            actor=SYSTEM_ACTOR, order_id=order_id, task_type=task.task_type.value,
            priority=task.priority.value,
        )
        await notify_safely(
            self.notifier,
            KITCHEN_AUDIENCE,
            "newFoodTask",
            {
                "taskId": task.id,
                "orderId": order_id,
                "taskType": task.task_type.value,
                "priority": task.priority.value,
                "isRoomService": room_service,
            },
        )
        return task

    async def claim(self, task_id: str, staff_id: str) -> Task:
        """
        Take ownership of a queued task.

        Exactly one of any number of concurrent callers wins; the others
        get AlreadyClaimedError.
        """
        if not staff_id or not staff_id.strip():
            raise InvalidStaffError("Staff ID is required")

        def take(task: Task) -> bool:
            if task.status == TaskStatus.QUEUED:
                now = utcnow()
                task.status = TaskStatus.ASSIGNED
                task.assigned_to = staff_id
                task.assigned_at = now
                task.add_history(TaskStatus.ASSIGNED, actor=staff_id)
                return True
            if task.status in (TaskStatus.ASSIGNED, TaskStatus.IN_PROGRESS):
                raise AlreadyClaimedError(
                    f"Task {task_id} is already claimed", task_id=task_id, assigned_to=task.assigned_to
                )
            raise InvalidStateError(f"Cannot claim task in {task.status.value} status", task_id=task_id)

        try:
            task = await self.tasks.update(task_id, take)
        except AlreadyClaimedError as e:
            self.logger.log_rejection("task", task_id, e.code, e.message, staff_id=staff_id)
            raise

        self.logger.log_transition(
            "task", task.id, TaskStatus.QUEUED.value, task.status.value, actor=staff_id
        )
        await notify_safely(
            self.notifier,
            KITCHEN_AUDIENCE,
            "taskClaimed",
            {"taskId": task.id, "orderId": task.order_id, "staffId": staff_id},
        )
        return task

    async def assign(self, order_id: str, task_type: TaskType, staff_id: str) -> Task:
        """Manager assignment of an order's queued task of ``task_type``."""
        if not staff_id or not staff_id.strip():
            raise InvalidStaffError("Staff ID is required")

        try:
            task_type = TaskType(task_type)
        except ValueError:
            raise InvalidInputError(f"Invalid task type: {task_type}") from None

        queued = [
            task for task in await self.tasks.list_for_order(order_id)
            if task.task_type == task_type and task.status == TaskStatus.QUEUED
        ]
        if not queued:
            raise NotFoundError(
                f"No queued {task_type.value} task for order {order_id}",
                order_id=order_id,
                task_type=task_type.value,
            )

        task = await self.claim(queued[0].id, staff_id)
        await notify_safely(
            self.notifier,
            staff_audience(staff_id),
            "foodTaskAssigned",
            {
                "taskId": task.id,
                "orderId": order_id,
                "taskType": task.task_type.value,
                "estimatedTime": task.estimated_completion_time.isoformat()
                if task.estimated_completion_time else None,
            },
        )
        return task

    async def advance(
        self,
        task_id: str,
        new_status: TaskStatus | str,
        staff_id: str,
        note: str | None = None,
    ) -> Task:
        """
        Move a task along its permitted transitions.

        Only the current assignee may advance a task; cancellation is only
        accepted from the system actor.
        """
        try:
            target = TaskStatus(new_status)
        except ValueError:
            raise InvalidStatusError(f"Invalid task status: {new_status}") from None

        if target in (TaskStatus.QUEUED, TaskStatus.ASSIGNED):
            raise InvalidStatusError(f"Cannot advance a task to {target.value}; claim it instead")
        if target == TaskStatus.FAILED and not (note and note.strip()):
            raise InvalidInputError("A note is required when failing a task")

        current = await self.tasks.get(task_id)
        if current is None:
            raise NotFoundError(f"Task {task_id} not found", task_id=task_id)
        expected = current.status

        def transition(task: Task) -> bool:
            if task.status != expected:
                raise ConflictError(
                    f"Task {task_id} changed from {expected.value} to {task.status.value}",
                    task_id=task_id,
                )
            if task.status.is_terminal:
                raise InvalidStateError(
                    f"Task {task_id} is {task.status.value} and can no longer change", task_id=task_id
                )
            if target == TaskStatus.CANCELLED:
                if staff_id != SYSTEM_ACTOR:
                    raise ForbiddenError("Tasks are cancelled by the system only", task_id=task_id)
            elif task.assigned_to != staff_id:
                raise ForbiddenError(f"Task {task_id} is not held by {staff_id}", task_id=task_id)
            if target not in TASK_TRANSITIONS[task.status]:
                raise InvalidStateError(
                    f"Cannot move task from {task.status.value} to {target.value}", task_id=task_id
                )

            now = utcnow()
            task.status = target
            if target == TaskStatus.IN_PROGRESS:
                task.started_at = now
            elif target == TaskStatus.COMPLETED:
                task.completed_at = now
                task.actual_completion_time = now
            elif target == TaskStatus.FAILED:
                task.failure_note = note
            task.add_history(target, actor=staff_id, note=note)
            return True

        task = await self.tasks.update(task_id, transition)

        self.logger.log_transition("task", task.id, expected.value, task.status.value, actor=staff_id)
        await notify_safely(
            self.notifier,
            KITCHEN_AUDIENCE,
            "taskStatusChanged",
            {"taskId": task.id, "orderId": task.order_id, "status": task.status.value},
        )
        return task

    async def _finish_for_order(
        self,
        order_id: str,
        status: TaskStatus,
        note: str,
        task_types: frozenset[TaskType] | None = None,
    ) -> list[Task]:
        finished: list[Task] = []

        for task in await self.tasks.list_for_order(order_id):
            if task.status.is_terminal or (task_types and task.task_type not in task_types):
                continue

            changed = False

            def finish(current: Task) -> bool:
                nonlocal changed
                if current.status.is_terminal:
                    return False
                now = utcnow()
                current.status = status
                if status == TaskStatus.COMPLETED:
                    current.completed_at = now
                    current.actual_completion_time = now
                current.add_history(status, actor=SYSTEM_ACTOR, note=note)
                changed = True
                return True

            updated = await self.tasks.update(task.id, finish)
            if changed:
                finished.append(updated)
                self.logger.log_transition(
                    "task", updated.id, task.status.value, status.value, actor=SYSTEM_ACTOR
                )

        return finished

    async def cancel_all_for_order(self, order_id: str, reason: str | None = None) -> list[Task]:
        """System cancellation of every non-terminal task of an order."""
        cancelled = await self._finish_for_order(
            order_id, TaskStatus.CANCELLED, note=reason or "Order cancelled"
        )
        for task in cancelled:
            if task.assigned_to:
                await notify_safely(
                    self.notifier,
                    staff_audience(task.assigned_to),
                    "orderCancelled",
                    {"orderId": order_id, "taskId": task.id, "reason": reason},
                )
        return cancelled

    async def close_for_order(
        self,
        order_id: str,
        task_types: frozenset[TaskType] | None = None,
    ) -> list[Task]:
        """System completion of an order's open tasks, of the given types or all of them."""
        return await self._finish_for_order(
            order_id, TaskStatus.COMPLETED, note="Closed by order lifecycle", task_types=task_types
        )

    async def list_pending(self) -> list[Task]:
        """Open tasks in dashboard order."""
        return sorted(await self.tasks.list_open(), key=pending_sort_key)

    async def list_for_order(self, order_id: str) -> list[Task]:
        return await self.tasks.list_for_order(order_id)

    async def get_task(self, task_id: str) -> Task:
        task = await self.tasks.get(task_id)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found", task_id=task_id)
        return task

    async def staff_workload(self, staff_id: str) -> dict[str, Any]:
        """Outstanding work held by one staff member."""
        held = [task for task in await self.list_pending() if task.assigned_to == staff_id]

        return {
            "staff_id": staff_id,
            "assigned": sum(1 for t in held if t.status == TaskStatus.ASSIGNED),
            "in_progress": sum(1 for t in held if t.status == TaskStatus.IN_PROGRESS),
            "estimated_minutes": sum(t.estimated_minutes for t in held),
            "task_ids": [t.id for t in held],
        }

    async def record_quality_checks(
        self,
        task_id: str,
        staff_id: str,
        checks: QualityChecks,
    ) -> Task:
        """Merge quality-check results onto a task held by ``staff_id``."""

        def merge(task: Task) -> bool:
            if task.status.is_terminal:
                raise InvalidStateError(
                    f"Task {task_id} is {task.status.value} and can no longer change", task_id=task_id
                )
            if task.assigned_to != staff_id:
                raise ForbiddenError(f"Task {task_id} is not held by {staff_id}", task_id=task_id)

            task.quality_checks = task.quality_checks.model_copy(
                update=checks.model_dump(exclude_none=True)
            )
            return True

        task = await self.tasks.update(task_id, merge)
        self.logger.logger.info("quality_checks_recorded", task_id=task_id, staff_id=staff_id)
        return task
