from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Hashable
from typing import Any, Literal, NamedTuple, Optional

from loguru import logger

QueryKey = tuple[Hashable, ...]
QueryStatus = Literal["loading", "success", "error"]


class QueryResult(NamedTuple):
    status: QueryStatus
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def loading(self) -> bool:
        return self.status == "loading"

    @property
    def success(self) -> bool:
        return self.status == "success"

    @property
    def failed(self) -> bool:
        return self.status == "error"


class QueryCache:
    """
    Keyed cache of async query results.

    A key identifies one version of a query, e.g. `("events", token, chain)`.
    A slot groups all versions of the same logical query so that the last
    good value stays readable while a newer key is loading or failed.
    """

    def __init__(self):
        self._results: dict[QueryKey, QueryResult] = {}
        self._tasks: dict[QueryKey, asyncio.Task] = {}
        self._slots: dict[QueryKey, Hashable] = {}
        self._latest: dict[Hashable, QueryKey] = {}
        self._last_success: dict[Hashable, Any] = {}

    def peek(self, key: QueryKey) -> Optional[QueryResult]:
        return self._results.get(key)

    def last_success(self, slot: Hashable, default=None) -> Any:
        return self._last_success.get(slot, default)

    async def fetch(
        self,
        key: QueryKey,
        query: Callable[[], Awaitable[Any]],
        slot: Optional[Hashable] = None,
    ) -> Any:
        """
        Return the cached value for `key` or run `query` and cache its result.
        Concurrent callers of the same key share a single run.
        """
        cached = self._results.get(key)
        if cached and cached.success:
            return cached.value

        task = self._tasks.get(key)
        if task is None:
            slot = slot if slot is not None else key[0]
            self._slots[key] = slot
            self._latest[slot] = key
            self._results[key] = QueryResult("loading")
            task = asyncio.ensure_future(self._run(key, query))
            # every awaiter may be cancelled before the run fails
            task.add_done_callback(_retrieve_exception)
            self._tasks[key] = task
        return await asyncio.shield(task)

    async def _run(self, key: QueryKey, query: Callable[[], Awaitable[Any]]) -> Any:
        try:
            value = await query()
        except Exception as exc:
            logger.debug(f"query {key} failed: {exc!s}")
            if key in self._slots:
                self._results[key] = QueryResult("error", error=exc)
            raise
        finally:
            self._tasks.pop(key, None)

        # dropped by invalidate() while running
        if key not in self._slots:
            return value
        self._results[key] = QueryResult("success", value=value)
        slot = self._slots[key]
        # an older key finishing late must not replace a newer value
        if self._latest.get(slot) == key:
            self._last_success[slot] = value
            self._prune(slot, keep=key)
        return value

    def _prune(self, slot: Hashable, keep: QueryKey) -> None:
        for key in [k for k, s in self._slots.items() if s == slot and k != keep]:
            if key not in self._tasks:
                self._results.pop(key, None)
                self._slots.pop(key, None)

    def invalidate(self, kind: Optional[Hashable] = None) -> None:
        """Drop cached results, all of them or the ones of one query kind."""
        keys = [k for k in self._results if kind is None or k[0] == kind]
        for key in keys:
            self._results.pop(key, None)
            self._slots.pop(key, None)

    def clear(self) -> None:
        self.invalidate()
        self._latest.clear()
        self._last_success.clear()


def _retrieve_exception(task: asyncio.Future) -> None:
    if not task.cancelled():
        task.exception()


query_cache = QueryCache()
