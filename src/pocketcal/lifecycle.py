"""Coordinated teardown for long-lived resources.

Anything that owns a socket or background task (today: the auth context and
its OAuth callback listener) registers here. ``serve()`` calls
``shutdown_all()`` on every exit path, including signal-driven ones, and turns
a ``False`` result into a non-zero exit code.

Created: 2026-10-03
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class _Hooks:
    shutdown: Callable[[], Any] | None = None
    reset: Callable[[], Any] | None = None


_components: dict[str, _Hooks] = {}


def register(
    name: str,
    *,
    shutdown: Callable[[], Any] | None = None,
    reset: Callable[[], Any] | None = None,
) -> None:
    """Register (or replace) the hooks for a named component.

    ``shutdown`` may be sync or async. ``reset`` is sync and only used by tests.
    """
    _components[name] = _Hooks(shutdown=shutdown, reset=reset)


async def _stop_one(name: str, hook: Callable[[], Any], timeout: float | None) -> bool:
    try:
        outcome = hook()
        if inspect.isawaitable(outcome):
            await asyncio.wait_for(outcome, timeout)
    except TimeoutError:
        logger.error("%s did not stop within %.1fs", name, timeout or 0)
        return False
    except Exception:
        logger.warning("Shutdown hook for %s failed", name, exc_info=True)
        return False
    logger.debug("Stopped %s", name)
    return True


async def shutdown_all(timeout: float | None = None) -> bool:
    """Stop every registered component in registration order.

    Each hook is bounded by ``timeout``; one failing hook does not skip the
    rest. Returns True only if all of them finished cleanly.
    """
    results = [
        await _stop_one(name, hooks.shutdown, timeout)
        for name, hooks in list(_components.items())
        if hooks.shutdown is not None
    ]
    return all(results)


def reset_all() -> None:
    """Run the reset hooks and forget every component."""
    for name, hooks in list(_components.items()):
        if hooks.reset is None:
            continue
        try:
            hooks.reset()
        except Exception:
            logger.warning("Reset hook for %s failed", name, exc_info=True)
    _components.clear()
