"""Reset order, task and catalog state in Redis (useful for testing)."""

import asyncio

from orderflow.state.manager import StateManager

KEY_PATTERNS = ["order:*", "orders:*", "task:*", "tasks:*", "catalog:item:*"]


async def reset_all_state() -> None:
    """Delete every orchestrator key from Redis."""
    print("\n⚠️  WARNING: This will delete ALL orders, tasks and catalog items from Redis!")
    response = input("Are you sure? (yes/no): ")

    if response.lower() != "yes":
        print("Cancelled.")
        return

    print("\nResetting state...")

    state_manager = StateManager()
    await state_manager.connect()

    deleted = 0
    for pattern in KEY_PATTERNS:
        # SCAN instead of KEYS so a shared Redis is not blocked
        async for key in state_manager.redis_client.scan_iter(match=pattern, count=500):
            await state_manager.delete(key)
            deleted += 1

    await state_manager.disconnect()

    print(f"✓ Cleared {deleted} keys from Redis\n")


if __name__ == "__main__":
    asyncio.run(reset_all_state())
