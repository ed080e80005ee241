"""
Core engine containing the debounced push queue.
The queue collects pulse pushes and flushes them after a quiet period, or at
the latest once the first queued push has waited its max-wait delay.
"""

from __future__ import annotations

import asyncio
import time
import typing as t
import uuid
from dataclasses import dataclass, field

import structlog

from maxflow.exceptions import QueueClosedError
from maxflow.models import (
    DEFAULT_MAX_QUEUE_TIME_MS,
    DEFAULT_QUEUE_DELAY_MS,
    PushOptions,
    push_options_adapter,
)
from maxflow.utils.logging import logging_context

log = structlog.get_logger(__name__)

SendFn = t.Callable[[t.Any], t.Awaitable[t.Any]]


@dataclass
class _QueuedPush:
    """A push waiting for the next flush."""

    payload: t.Any
    future: asyncio.Future[t.Any]
    options: PushOptions | None = None
    enqueued_at: float = field(default_factory=time.time)


class PushQueue:
    """
    Debounce pushes and dispatch them in flushes.

    A flush happens when either:
    - no push arrived for the quiet period (``debounce``), OR
    - the first push of the current batch has waited ``debounce_max_wait``

    Notes
    -----
    Each flushed push is sent with its own ``send`` call. All calls of a flush
    start concurrently in enqueue order and every caller's future is settled
    as soon as its own call completes, independently of its siblings.
    """

    def __init__(
        self,
        send: SendFn,
        queue_delay: float = DEFAULT_QUEUE_DELAY_MS,
        max_queue_time: float = DEFAULT_MAX_QUEUE_TIME_MS,
    ):
        """
        Initialize the queue.

        Parameters
        ----------
        send : SendFn
            Coroutine function sending one payload and returning its response.
        queue_delay : float
            Default quiet period in milliseconds.
        max_queue_time : float
            Default max wait in milliseconds.
        """
        self._send = send
        self._queue_delay = queue_delay
        self._max_queue_time = max_queue_time

        self._pending: list[_QueuedPush] = []
        self._debounce_handle: asyncio.TimerHandle | None = None
        self._max_wait_handle: asyncio.TimerHandle | None = None
        self._dispatch_tasks: set[asyncio.Task[None]] = set()
        self._closed = False

        log.debug(
            event="Initialized PushQueue",
            queue_delay_ms=queue_delay,
            max_queue_time_ms=max_queue_time,
        )

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def in_flight_count(self) -> int:
        return len(self._dispatch_tasks)

    @property
    def closed(self) -> bool:
        return self._closed

    def enqueue(
        self,
        payload: t.Any,
        options: PushOptions | t.Mapping[str, t.Any] | None = None,
    ) -> asyncio.Future[t.Any]:
        """
        Queue a payload and return the future of its response.

        Must be called from a running event loop.

        Parameters
        ----------
        payload : typing.Any
            Data to send.
        options : PushOptions | typing.Mapping[str, typing.Any] | None, optional
            Per-push timing overrides. ``immediately`` sends right away and
            leaves the queue and its timers untouched.

        Returns
        -------
        asyncio.Future[typing.Any]
            Future resolved with the response or failed with the send error.
        """
        if self._closed:
            raise QueueClosedError("Push queue is closed")
        push_options = push_options_adapter.validate_python(options)
        loop = asyncio.get_running_loop()

        if push_options is not None and push_options.immediately:
            log.debug(event="Sending push immediately")
            return asyncio.ensure_future(self._send(payload))

        future: asyncio.Future[t.Any] = loop.create_future()
        self._pending.append(_QueuedPush(payload=payload, future=future, options=push_options))
        pending_count = len(self._pending)

        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
        delay_ms = self._queue_delay
        if push_options is not None and push_options.debounce is not None:
            delay_ms = push_options.debounce
        self._debounce_handle = loop.call_later(delay_ms / 1000, self._on_timer, "debounce")

        if pending_count == 1:
            max_wait_ms = self._max_queue_time
            if push_options is not None and push_options.debounce_max_wait is not None:
                max_wait_ms = push_options.debounce_max_wait
            log.debug(event="Starting max-wait timer", max_wait_ms=max_wait_ms)
            self._max_wait_handle = loop.call_later(max_wait_ms / 1000, self._on_timer, "max_wait")

        log.debug(
            event="Queued push",
            pending_count=pending_count,
            debounce_ms=delay_ms,
        )
        return future

    def flush(self) -> asyncio.Task[None] | None:
        """
        Detach every queued push and start dispatching it.

        Returns
        -------
        asyncio.Task[None] | None
            Dispatch task of this flush, ``None`` when the queue was empty.
        """
        if not self._pending:
            return None

        requests, self._pending = self._pending, []
        self._cancel_timers()

        flush_id = str(object=uuid.uuid4())
        log.info(event="Flushing push queue", flush_id=flush_id, request_count=len(requests))
        task = asyncio.create_task(
            self._dispatch(flush_id=flush_id, requests=requests),
            name=f"push_flush_{flush_id}",
        )
        self._dispatch_tasks.add(task)
        task.add_done_callback(self._on_dispatch_task_done)
        return task

    async def close(self) -> None:
        """
        Flush remaining pushes and wait for every in-flight dispatch.

        Notes
        -----
        Pushes enqueued after ``close`` raise ``QueueClosedError``.
        """
        self._closed = True
        self.flush()
        self._cancel_timers()
        if self._dispatch_tasks:
            await asyncio.gather(*self._dispatch_tasks, return_exceptions=True)
        log.debug(event="PushQueue closed")

    def _on_timer(self, trigger: str) -> None:
        if trigger == "debounce":
            self._debounce_handle = None
        else:
            self._max_wait_handle = None
        if not self._pending:
            log.debug(event="Timer fired with empty queue", trigger=trigger)
            return
        log.debug(event="Timer fired", trigger=trigger, pending_count=len(self._pending))
        self.flush()

    def _cancel_timers(self) -> None:
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None
        if self._max_wait_handle is not None:
            self._max_wait_handle.cancel()
            self._max_wait_handle = None

    async def _dispatch(self, *, flush_id: str, requests: list[_QueuedPush]) -> None:
        """
        Send every push of a flush concurrently.

        Parameters
        ----------
        flush_id : str
            Identifier bound to log records of this flush.
        requests : list[_QueuedPush]
            Detached pushes, in enqueue order.
        """
        with logging_context(flush_id=flush_id):
            results = await asyncio.gather(
                *(self._send_one(request=request) for request in requests)
            )
            failed = results.count(False)
            log.info(
                event="Flush dispatched",
                request_count=len(requests),
                failed_count=failed,
            )

    async def _send_one(self, *, request: _QueuedPush) -> bool:
        """
        Send one queued push and settle its future.

        Returns
        -------
        bool
            ``True`` when the send succeeded.
        """
        try:
            response = await self._send(request.payload)
        except asyncio.CancelledError:
            if not request.future.done():
                request.future.cancel()
            raise
        except Exception as error:
            log.warning(
                event="Queued push failed",
                queued_for_seconds=round(time.time() - request.enqueued_at, 3),
                error=str(object=error),
            )
            if not request.future.done():
                request.future.set_exception(error)
            return False
        if not request.future.done():
            request.future.set_result(response)
        return True

    def _on_dispatch_task_done(self, task: asyncio.Task[None]) -> None:
        """
        Cleanup callback for background dispatch tasks.

        Parameters
        ----------
        task : asyncio.Task[None]
            Completed task.
        """
        self._dispatch_tasks.discard(task)
        try:
            _ = task.exception()
        except asyncio.CancelledError:
            pass
