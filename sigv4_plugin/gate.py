"""
Credential gate between asynchronous credential resolution and per-request signing.

Credentials are resolved exactly once. Until then, a signing call is parked in
a single pending slot and replayed when resolution succeeds. A newer call
overwrites the parked one: the overwritten caller's callback is never invoked.
The overwrite is logged and counted.

Resolution runs as a task on the host's event loop. A host that constructs the
plugin outside a running loop gets a daemon thread running its own loop
instead, and then replayed callbacks run on that thread. State and slot are
guarded by a lock so both arrangements see one consistent transition.
"""

import asyncio
import concurrent.futures
import functools
import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping, MutableMapping, Optional, Union

from .auth.credentials import CredentialResolutionError, CredentialResolver, ResolvedCredentials
from .auth.sigv4 import SIGNATURE_NOT_ADDED
from .metrics import MetricUnit, SigningMetricName, get_metrics_emitter

logger = logging.getLogger(__name__)

SigningHandler = Callable[[MutableMapping[str, Any], Mapping[str, Any], ResolvedCredentials], None]
Resolution = Union[asyncio.Task, concurrent.futures.Future]


class GateState(str, Enum):
    """Credential resolution state. Both RESOLVED states are terminal."""
    UNRESOLVED = "unresolved"
    RESOLVED_OK = "resolved_ok"
    RESOLVED_ERROR = "resolved_error"


@dataclass
class PendingRequest:
    """A signing call that arrived before credentials were resolved."""
    request_params: MutableMapping[str, Any]
    context: Mapping[str, Any]
    events: Any
    callback: Callable[..., Any]


class CredentialGate:
    """
    Runs credential resolution once and routes signing calls around it.

    Attributes:
        state: Current resolution state
        error: Resolution failure, once in RESOLVED_ERROR
    """

    def __init__(self, resolver: CredentialResolver, handler: SigningHandler):
        """
        Args:
            resolver: Credential resolver, awaited once
            handler: Signs one request with the resolved credentials
        """
        self._resolver = resolver
        self._handler = handler
        self.state = GateState.UNRESOLVED
        self.error: Optional[CredentialResolutionError] = None
        self._resolved: Optional[ResolvedCredentials] = None
        self._pending: Optional[PendingRequest] = None
        self._resolution: Optional[Resolution] = None
        self._lock = threading.Lock()
        self._done = asyncio.Event()
        self._finished = threading.Event()

    @property
    def pending(self) -> Optional[PendingRequest]:
        return self._pending

    @property
    def resolved(self) -> Optional[ResolvedCredentials]:
        return self._resolved

    @property
    def in_background(self) -> bool:
        """True when resolution runs on the gate's own thread."""
        return isinstance(self._resolution, concurrent.futures.Future)

    def start(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> Resolution:
        """
        Schedule credential resolution. Later calls return the same handle.

        Args:
            loop: Loop to run resolution on. Defaults to the running loop, or to
                a background thread when no loop is running.

        Returns:
            The resolution task, or a concurrent future in the background case
        """
        with self._lock:
            if self._resolution is None:
                if loop is None:
                    try:
                        loop = asyncio.get_running_loop()
                    except RuntimeError:
                        loop = None
                if loop is not None:
                    self._resolution = loop.create_task(self._resolve())
                else:
                    self._resolution = self._start_in_background()
            return self._resolution

    def _start_in_background(self) -> concurrent.futures.Future:
        loop = asyncio.new_event_loop()

        def run() -> None:
            asyncio.set_event_loop(loop)
            try:
                loop.run_forever()
            finally:
                loop.close()

        threading.Thread(target=run, name="sigv4-credentials", daemon=True).start()
        future = asyncio.run_coroutine_threadsafe(self._resolve(), loop)
        future.add_done_callback(lambda _: loop.call_soon_threadsafe(loop.stop))
        logger.debug("No running event loop, resolving credentials on a background thread")
        return future

    async def wait_resolved(self) -> GateState:
        """Wait until resolution has reached a terminal state."""
        if self.in_background:
            await asyncio.wrap_future(self._resolution)
        else:
            await self._done.wait()
        return self.state

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until resolution has finished. Returns False on timeout."""
        return self._finished.wait(timeout)

    async def _resolve(self) -> None:
        started = time.monotonic()
        try:
            resolved = await self._resolver.resolve()
        except CredentialResolutionError as e:
            self._on_failure(e)
        except Exception as e:
            error = CredentialResolutionError(str(e))
            error.__cause__ = e
            self._on_failure(error)
        else:
            get_metrics_emitter().emit(
                SigningMetricName.CREDENTIAL_RESOLUTION_LATENCY,
                (time.monotonic() - started) * 1000,
                MetricUnit.MILLISECONDS,
            )
            self._on_success(resolved)
        finally:
            self._done.set()
            self._finished.set()

    def _on_failure(self, error: CredentialResolutionError) -> None:
        with self._lock:
            self.error = error
            self.state = GateState.RESOLVED_ERROR
            pending, self._pending = self._pending, None
        logger.error("%scredentials fetch error.  Error: %s", SIGNATURE_NOT_ADDED, error)
        get_metrics_emitter().emit(SigningMetricName.CREDENTIAL_RESOLUTION_FAILURE, 1)

        if pending is not None:
            get_metrics_emitter().emit_unsigned("credentials_error")
            self._release(pending.callback)

    def _on_success(self, resolved: ResolvedCredentials) -> None:
        with self._lock:
            self._resolved = resolved
            self.state = GateState.RESOLVED_OK
            pending, self._pending = self._pending, None
        logger.info("AWS credentials resolved (region=%s)", resolved.region)

        if pending is not None:
            logger.debug("Replaying request buffered before credential resolution")
            self._sign_and_continue(
                pending.request_params,
                pending.context,
                functools.partial(self._release, pending.callback),
            )

    @staticmethod
    def _release(callback: Callable[..., Any], *args: Any) -> None:
        # Runs inside the resolution task, where a raised error would go unobserved.
        try:
            callback(*args)
        except Exception:
            logger.exception("Callback of a request buffered before credential resolution raised")

    def _sign_and_continue(
        self,
        request_params: MutableMapping[str, Any],
        context: Mapping[str, Any],
        callback: Callable[..., Any],
    ) -> None:
        try:
            self._handler(request_params, context, self._resolved)
        except Exception as e:
            logger.error("%s%s", SIGNATURE_NOT_ADDED, e)
            get_metrics_emitter().emit_unsigned("invalid_request")
            callback(e)
            return
        callback()

    def on_request(
        self,
        request_params: MutableMapping[str, Any],
        context: Mapping[str, Any],
        events: Any,
        callback: Callable[..., Any],
    ) -> None:
        """
        Sign a request now, or park it until credentials are resolved.

        The callback is invoked exactly once, except for a parked request that
        a later call overwrites before resolution completes.
        """
        with self._lock:
            state = self.state
            dropped = None
            if state is GateState.UNRESOLVED:
                dropped = self._pending
                self._pending = PendingRequest(request_params, context, events, callback)

        if state is GateState.RESOLVED_OK:
            self._sign_and_continue(request_params, context, callback)
        elif state is GateState.RESOLVED_ERROR:
            logger.warning(
                "%scredentials fetch error.  "
                "Ensure the AWS SDK can obtain valid credentials.  Error: %s",
                SIGNATURE_NOT_ADDED,
                self.error,
            )
            get_metrics_emitter().emit_unsigned("credentials_error")
            callback()
        else:
            if dropped is not None:
                logger.warning(
                    "Request arrived before credentials were resolved while another "
                    "was already waiting; the earlier request is dropped and its "
                    "callback will not be invoked"
                )
                get_metrics_emitter().emit(SigningMetricName.PENDING_REQUEST_DROPPED, 1)
            get_metrics_emitter().emit(SigningMetricName.REQUEST_BUFFERED, 1)
