"""State management modules."""

from orderflow.state.catalog import CatalogRepository
from orderflow.state.manager import StateManager
from orderflow.state.orders import OrderRepository
from orderflow.state.tasks import TaskRepository

__all__ = ["StateManager", "OrderRepository", "TaskRepository", "CatalogRepository"]
