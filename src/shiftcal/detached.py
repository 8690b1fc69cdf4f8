"""
Best-effort side effects that run after the response is sent.

Services return ``Detached`` values instead of awaiting side effects such
as invite emails or upstream token revocation; routers hand them to
``schedule``. A failing effect is logged and swallowed, so it can never
change the outcome of the operation that produced it.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import structlog
from fastapi import BackgroundTasks

logger = structlog.get_logger()


@dataclass(frozen=True)
class Detached:
    """A named, fire-and-forget coroutine call."""

    name: str
    func: Callable[..., Awaitable[Any]]
    args: tuple[Any, ...] = ()
    kwargs: dict[str, Any] = field(default_factory=dict)

    async def run(self) -> None:
        try:
            await self.func(*self.args, **self.kwargs)
        except Exception:
            logger.warning("detached_task_failed", task=self.name, exc_info=True)


def schedule(background_tasks: BackgroundTasks, *effects: Detached | None) -> None:
    """Queue effects to run after the response; ``None`` entries are skipped."""
    for effect in effects:
        if effect is not None:
            background_tasks.add_task(effect.run)
