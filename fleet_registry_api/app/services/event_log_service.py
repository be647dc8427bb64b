"""
Best-effort shipping of operation events to the remote log service.

Services describe what they did (create, update, search, export, ...)
as a structured event.  ``EventLogClient.emit`` schedules the HTTP post
in the background and returns immediately; the post itself runs the
blocking ``requests`` call in a worker thread and is bounded by the
configured timeout.  Any failure (service down, timeout, bad status)
is logged locally and dropped, so the log service can never change the
outcome of the operation being logged.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set

import requests

logger = logging.getLogger(__name__)


def elapsed_ms(started: float) -> int:
    """Milliseconds since ``started`` (a ``time.monotonic()`` value)."""
    return int((time.monotonic() - started) * 1000)


class EventLogClient:
    """Asynchronous, fire-and-forget client for the log service.

    Parameters
    ----------
    url : str
        Endpoint receiving JSON events.  An empty string disables
        shipping entirely.
    timeout : float
        Upper bound, in seconds, for one post.
    source : str
        Value sent as ``userAgent`` so the log service can tell
        producers apart.
    session : requests.Session, optional
        Session used for posts; one is created when omitted.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 5.0,
        source: str = "fleet-registry-api",
        session: Optional[requests.Session] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.source = source
        self.session = session or requests.Session()
        self._pending: Set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    def build_event(
        self,
        *,
        method: str,
        url: str,
        operation: str,
        resource: str,
        status_code: int,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        response_time: Optional[int] = None,
        error: Optional[BaseException] = None,
    ) -> Dict[str, Any]:
        event: Dict[str, Any] = {
            "method": method,
            "url": url,
            "statusCode": status_code,
            "operation": operation,
            "resource": resource,
            "message": message,
            "metadata": metadata or {},
            "responseTime": response_time,
            "isError": error is not None or status_code >= 400,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "ipAddress": "internal",
            "userAgent": self.source,
        }
        if error is not None:
            event["errorMessage"] = str(error)
        return event

    def _post(self, event: Dict[str, Any]) -> None:
        response = self.session.post(self.url, json=event, timeout=self.timeout)
        response.raise_for_status()

    async def send(self, event: Dict[str, Any]) -> bool:
        """Post one event and report whether it was delivered.

        Never raises: failures are logged at WARNING level.
        """
        if not self.enabled:
            return False
        try:
            await asyncio.wait_for(asyncio.to_thread(self._post, event), timeout=self.timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning("Log service did not answer within %.1fs; event dropped", self.timeout)
        except Exception as exc:
            # The log service must never affect the operation being logged
            logger.warning("Failed to send log to log service: %s", exc)
        return False

    def emit(self, **fields: Any) -> None:
        """Build an event from ``fields`` and ship it in the background."""
        if not self.enabled:
            return
        event = self.build_event(**fields)
        task = asyncio.get_running_loop().create_task(self.send(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def aclose(self) -> None:
        """Wait (bounded by the timeout) for in-flight events, then close the session."""
        if self._pending:
            await asyncio.wait(set(self._pending), timeout=self.timeout)
        self.session.close()
