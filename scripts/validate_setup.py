"""Preflight checks for a local orchestrator deployment."""

import asyncio
import sys
from pathlib import Path

import httpx
from pydantic import ValidationError
from redis.exceptions import RedisError

REQUIRED_MODULES = [
    "orderflow/workflow/lifecycle.py",
    "orderflow/workflow/task_queue.py",
    "orderflow/workflow/webhooks.py",
    "orderflow/state/manager.py",
    "orderflow/api/routes.py",
    "orderflow/main.py",
]


async def check_interpreter() -> tuple[bool, str]:
    major, minor = sys.version_info[:2]
    if (major, minor) < (3, 11):
        return False, f"Python {major}.{minor} found, 3.11 or newer is needed"
    return True, f"Python {major}.{minor}"


async def check_settings() -> tuple[bool, str]:
    """Settings must load and carry PayHere merchant credentials."""
    from orderflow.config import get_settings

    try:
        settings = get_settings()
    except ValidationError as e:
        return False, f"settings failed to load: {e}"

    if not (settings.payhere_merchant_id and settings.payhere_merchant_secret):
        return False, "PAYHERE_MERCHANT_ID and PAYHERE_MERCHANT_SECRET must both be set"

    return True, (
        f"{settings.environment}, tax {settings.tax_rate}, "
        f"delivery fee {settings.delivery_fee} {settings.currency}"
    )


async def check_layout() -> tuple[bool, str]:
    missing = [path for path in REQUIRED_MODULES if not Path(path).is_file()]
    if missing:
        return False, "missing " + ", ".join(missing)
    return True, f"{len(REQUIRED_MODULES)} core modules present"


async def check_redis() -> tuple[bool, str]:
    from orderflow.state.manager import StateManager

    state_manager = StateManager()
    try:
        await state_manager.ping()
    except (RedisError, OSError) as e:
        return False, f"cannot reach {state_manager.redis_url} ({e})"
    finally:
        await state_manager.disconnect()
    return True, f"reachable at {state_manager.redis_url}"


async def check_running_api(base_url: str = "http://localhost:8000") -> tuple[bool, str]:
    """A stopped API is reported but does not fail the run."""
    try:
        async with httpx.AsyncClient(base_url=base_url, timeout=5.0) as client:
            response = await client.get("/health")
    except httpx.HTTPError:
        return True, "not running (start it with: uvicorn orderflow.main:app)"

    body = response.json()
    return response.status_code == 200, f"{body.get('status')} (redis {body.get('redis')})"


CHECKS = [
    ("interpreter", check_interpreter),
    ("settings", check_settings),
    ("layout", check_layout),
    ("redis", check_redis),
    ("api", check_running_api),
]


async def main() -> int:
    failures = 0
    for name, check in CHECKS:
        passed, detail = await check()
        failures += not passed
        print(f"[{'ok' if passed else 'FAIL'}] {name:<12} {detail}")

    if failures:
        print(f"\n{failures} check(s) failed")
        return 1

    print("\nReady. Seed the menu with: python scripts/seed_data.py")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
