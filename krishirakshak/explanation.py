# krishirakshak/explanation.py
import asyncio
import functools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from krishirakshak import api_client
from krishirakshak.errors import RequestCancelled

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExplanationContext:
    label: str
    advice: str
    confidence: str
    messages: List[dict] = field(default_factory=list)

    def to_payload(self) -> dict:
        return {
            "label": self.label,
            "advice": self.advice,
            "confidence": self.confidence,
            "messages": list(self.messages),
        }


class CancellationToken:
    def __init__(self):
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self):
        self._cancelled = True


@dataclass
class PendingRequest:
    target: Any
    token: CancellationToken
    task: "asyncio.Future"

    def cancel(self):
        self.token.cancel()
        self.task.cancel()


class ExplanationClient:
    """
    Requests generated explanations, one at a time.

    Starting a request cancels whatever request is still pending. A
    cancelled request raises RequestCancelled, even if its HTTP call later
    completes; that late response is dropped.

    `transport` is a blocking callable `(payload) -> str`, run in a worker
    thread. It defaults to the HTTP client in `api_client`.
    """

    def __init__(self, transport: Optional[Callable[[dict], str]] = None, base_url=None, timeout=60):
        if transport is None:
            transport = functools.partial(
                api_client.post_agent_response, base_url=base_url, timeout=timeout
            )
        self._transport = transport
        self._pending: Optional[PendingRequest] = None

    @property
    def pending(self) -> Optional[PendingRequest]:
        return self._pending

    def cancel(self) -> bool:
        if self._pending is None:
            return False
        self._pending.cancel()
        self._pending = None
        return True

    async def request_explanation(self, context: ExplanationContext, target=None) -> str:
        if self.cancel():
            logger.info("Superseded pending explanation request")

        token = CancellationToken()
        task = asyncio.ensure_future(asyncio.to_thread(self._transport, context.to_payload()))
        pending = PendingRequest(target=target, token=token, task=task)
        self._pending = pending

        try:
            try:
                explanation = await task
            except asyncio.CancelledError:
                if token.cancelled:
                    raise RequestCancelled("Request canceled") from None
                # The caller itself was cancelled.
                task.cancel()
                raise
            if token.cancelled or self._pending is not pending:
                raise RequestCancelled("Request canceled")
            return explanation
        finally:
            if self._pending is pending:
                self._pending = None
