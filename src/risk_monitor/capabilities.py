"""Capability interfaces the pipeline calls but does not implement itself.

Each capability may be a plain function or a coroutine function. Sync
callables are run in a worker thread so they never block sibling work.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable, Protocol, Sequence, Union

if TYPE_CHECKING:
    from .models import Article, RawArticleRecord, Report


class FetchSource(Protocol):
    """Retrieve raw article candidates for one source URL."""

    def __call__(
        self, url: str
    ) -> Union[Iterable["RawArticleRecord | Article"], Awaitable[Iterable["RawArticleRecord | Article"]]]:
        ...


class ChannelSender(Protocol):
    """Deliver a report to recipients; raise on failure."""

    def __call__(self, recipients: Sequence[str], report: "Report") -> Union[None, Awaitable[None]]:
        ...


class ReportSink(Protocol):
    """Persist a finished report."""

    def __call__(self, report: "Report") -> Union[None, Awaitable[None]]:
        ...


def is_async_callable(func: Callable[..., Any]) -> bool:
    if inspect.iscoroutinefunction(func):
        return True
    call = getattr(func, "__call__", None)
    return call is not None and inspect.iscoroutinefunction(call)


async def invoke(func: Callable[..., Any], *args: Any) -> Any:
    """Call a sync or async capability and return its result."""
    if is_async_callable(func):
        return await func(*args)
    result = await asyncio.to_thread(func, *args)
    if inspect.isawaitable(result):
        return await result
    return result
