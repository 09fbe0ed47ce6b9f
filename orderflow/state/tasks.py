"""Kitchen task document persistence and indexes."""

from typing import Callable

from redis.asyncio.client import Pipeline

from orderflow.errors import NotFoundError
from orderflow.models.task import Task
from orderflow.state.manager import StateManager
from orderflow.utils.logging import get_logger

logger = get_logger(__name__)

TaskMutation = Callable[[Task], bool | None]

OPEN_TASKS_KEY = "tasks:open"
TASK_SEQUENCE_KEY = "tasks:seq"


class TaskRepository:
    """Stores tasks as JSON documents with per-order and open-task indexes."""

    def __init__(self, state_manager: StateManager):
        self.state = state_manager

    def _task_key(self, task_id: str) -> str:
        """Generate Redis key for a task."""
        return f"task:{task_id}"

    def _order_tasks_key(self, order_id: str) -> str:
        return f"order:{order_id}:tasks"

    async def create(self, task: Task) -> Task:
        """Persist a new task; the sequence number fixes FIFO order."""
        task.sequence = await self.state.increment(TASK_SEQUENCE_KEY)

        def index(pipe: Pipeline) -> None:
            pipe.sadd(self._order_tasks_key(task.order_id), task.id)
            if not task.status.is_terminal:
                pipe.sadd(OPEN_TASKS_KEY, task.id)

        await self.state.create(self._task_key(task.id), task.model_dump(mode="json"), extra_writes=index)

        logger.debug("task_stored", task_id=task.id, order_id=task.order_id, sequence=task.sequence)
        return task

    async def get(self, task_id: str) -> Task | None:
        """Retrieve a task by ID."""
        data = await self.state.get(self._task_key(task_id))

        if not data:
            return None

        return Task.model_validate(data)

    async def _load(self, task_ids: set[str]) -> list[Task]:
        ordered_ids = sorted(task_ids)
        documents = await self.state.get_many([self._task_key(tid) for tid in ordered_ids])
        tasks = [Task.model_validate(doc) for doc in documents if doc]
        return sorted(tasks, key=lambda t: t.sequence)

    async def list_for_order(self, order_id: str) -> list[Task]:
        """All tasks for an order in creation order."""
        return await self._load(await self.state.smembers(self._order_tasks_key(order_id)))

    async def list_open(self) -> list[Task]:
        """All non-terminal tasks in creation order."""
        tasks = await self._load(await self.state.smembers(OPEN_TASKS_KEY))
        return [task for task in tasks if not task.status.is_terminal]

    async def update(self, task_id: str, mutate: TaskMutation) -> Task:
        """
        Apply ``mutate`` to the stored task as one atomic write.

        The open-task index is maintained inside the same transaction.
        """
        result: Task | None = None

        def apply(current: dict | None) -> dict | None:
            nonlocal result
            if current is None:
                raise NotFoundError(f"Task {task_id} not found", task_id=task_id)

            task = Task.model_validate(current)
            changed = mutate(task)
            result = task
            if changed is False:
                return None
            return task.model_dump(mode="json")

        def index(pipe: Pipeline, updated: dict) -> None:
            if result is not None and result.status.is_terminal:
                pipe.srem(OPEN_TASKS_KEY, task_id)

        await self.state.compare_and_swap(self._task_key(task_id), apply, extra_writes=index)
        return result
