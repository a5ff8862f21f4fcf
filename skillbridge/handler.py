"""Handler interface shared by Lambda and debug-relay invocations."""

import asyncio
import inspect
import threading
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Union

# handler(ctx, request) -> response; raising means the invocation failed
Handler = Callable[["HandlerContext", Any], Union[Any, Awaitable[Any]]]


@dataclass
class HandlerContext:
    """Per-invocation context passed to the skill handler.

    Attributes:
        request_id: Correlation id of the relay frame, or the Lambda request id
        skill_id: Skill the invocation belongs to
        cancel_event: Set when the owning session is shutting down. Handlers
            running long work can poll ``cancelled``.
        lambda_context: The host runtime's context object in production mode
    """

    request_id: str = ""
    skill_id: str = ""
    cancel_event: threading.Event = field(default_factory=threading.Event)
    lambda_context: Optional[Any] = None

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()


async def invoke_handler(handler: Handler, ctx: HandlerContext, request: Any) -> Any:
    """Call a handler from the event loop.

    Coroutine functions are awaited directly. Plain functions run in a worker
    thread so the loop keeps servicing cancellation while they work.
    """
    if inspect.iscoroutinefunction(handler):
        return await handler(ctx, request)

    result = await asyncio.to_thread(handler, ctx, request)
    if inspect.isawaitable(result):
        result = await result
    return result


def call_handler(handler: Handler, ctx: HandlerContext, request: Any) -> Any:
    """Call a handler outside any event loop (Lambda invocations)."""
    result = handler(ctx, request)
    if inspect.isawaitable(result):
        return asyncio.run(_await(result))
    return result


async def _await(awaitable: Awaitable[Any]) -> Any:
    return await awaitable
