"""
Per-instance cache for shared computations.

Each wrapped instance owns exactly one ``SharedComputationCache``; it is never
shared between instances, including instances of the same class.

Two maps are kept:
- ``completed``: computation name -> resolved value
- ``in_flight``: computation name -> task of an async computation not yet settled

A failed async computation is dropped from ``in_flight`` without populating
``completed``, so the next access runs it again.

The stored tasks are the computations themselves. Callers receive them
wrapped in ``asyncio.shield`` so that one abandoned read cannot cancel the
work other readers are waiting on.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Dict

MISSING = object()


@dataclass
class SharedComputationCache:
    completed: Dict[str, Any] = field(default_factory=dict)
    in_flight: Dict[str, "asyncio.Future[Any]"] = field(default_factory=dict)
    # Settled tasks of async computations; callers of an async method expect
    # an awaitable back even once the value is known.
    _settled: Dict[str, "asyncio.Future[Any]"] = field(default_factory=dict, repr=False)

    def lookup(self, name: str) -> Any:
        """Cached value (or settled task), pending task, or ``MISSING``."""
        if name in self.completed:
            return self._settled.get(name, self.completed[name])
        if name in self.in_flight:
            return self.in_flight[name]
        return MISSING

    def store(self, name: str, value: Any) -> Any:
        self.completed[name] = value
        self._settled.pop(name, None)
        return value

    def track(self, name: str, awaitable: Awaitable[Any]) -> "asyncio.Future[Any]":
        """
        Schedule ``awaitable`` and record it as in flight.

        The returned task can be awaited any number of times. When it settles
        the entry leaves ``in_flight``; on success the value moves to
        ``completed`` before any awaiter resumes.
        """
        task: "asyncio.Future[Any]"

        async def settle() -> Any:
            try:
                value = await awaitable
            except BaseException:
                self.in_flight.pop(name, None)
                raise
            self.completed[name] = value
            self._settled[name] = task
            self.in_flight.pop(name, None)
            return value

        task = asyncio.ensure_future(settle())
        self.in_flight[name] = task
        return task

    def clear(self) -> None:
        self.completed.clear()
        self.in_flight.clear()
        self._settled.clear()
