"""Read access to the menu catalog."""

from orderflow.models.catalog import MenuItem
from orderflow.state.manager import StateManager


class CatalogRepository:
    """Current catalog prices, owned by the menu service."""

    def __init__(self, state_manager: StateManager):
        self.state = state_manager

    def _item_key(self, item_id: str) -> str:
        return f"catalog:item:{item_id}"

    async def get_item(self, item_id: str) -> MenuItem | None:
        data = await self.state.get(self._item_key(item_id))

        if not data:
            return None

        return MenuItem.model_validate(data)

    async def put_item(self, item: MenuItem) -> None:
        """Write a catalog entry (seeding and tests)."""
        await self.state.set(self._item_key(item.item_id), item.model_dump(mode="json"))
