"""ToolContext: per-invocation handle passed to handlers that ask for it."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from paperserve.protocols.mcp.models import JsonRpcNotification, RequestId

NotificationSink = Callable[[JsonRpcNotification], Awaitable[None]]


@dataclass
class ToolContext:
    """Invocation details for a single ``tools/call``.

    A handler receives one when its signature has a ``ctx`` parameter::

        async def summarize(args: SummarizeArgs, ctx: ToolContext) -> str:
            await ctx.report_progress(1, 2, "fetched abstract")
            ...

    Progress is only delivered when the client supplied a progress token
    and the transport streams its response; otherwise it is dropped.
    """

    tool_name: str
    request_id: RequestId | None = None
    progress_token: str | int | None = None
    meta: dict[str, Any] | None = None
    _sink: NotificationSink | None = None

    async def report_progress(
        self,
        progress: float,
        total: float | None = None,
        message: str | None = None,
    ) -> None:
        """Send a ``notifications/progress`` message for this request."""
        if self._sink is None or self.progress_token is None:
            return
        params: dict[str, Any] = {"progressToken": self.progress_token, "progress": progress}
        if total is not None:
            params["total"] = total
        if message is not None:
            params["message"] = message
        await self._sink(JsonRpcNotification(method="notifications/progress", params=params))
