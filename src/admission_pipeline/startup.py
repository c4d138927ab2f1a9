"""Startup sequencing: the listener opens only after confirmed store connectivity."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any

import uvicorn

from admission_pipeline._types import ConnectCallback, ListenCallback, ReadyCallback
from admission_pipeline.exceptions import StartupConnectivityFailure
from admission_pipeline.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class LifecycleState(Enum):
    INITIALIZING = "initializing"
    STORE_CONNECTED = "store-connected"
    LISTENING = "listening"
    FAILED = "failed"


class StartupSequencer:
    """Single-shot ``initializing -> store-connected -> listening`` state machine.

    ``connect`` must return only once connectivity is confirmed and raise
    otherwise; ``listen`` opens the listener and runs until shutdown. If
    ``connect`` fails or times out the sequencer ends in ``failed`` and
    ``listen`` is never invoked.

    When ``ready`` is given the state becomes ``listening`` only once it
    reports true, i.e. once the listener actually accepts connections. A
    listener that raises, or returns before that point, leaves ``failed``.
    Without ``ready`` the state is set as soon as ``listen`` is invoked.
    """

    def __init__(
        self,
        connect: ConnectCallback,
        listen: ListenCallback,
        *,
        connect_timeout: float = 10.0,
        ready: ReadyCallback | None = None,
        poll_interval: float = 0.05,
    ) -> None:
        self._connect = connect
        self._listen = listen
        self._connect_timeout = connect_timeout
        self._ready = ready
        self._poll_interval = poll_interval
        self._state = LifecycleState.INITIALIZING
        self._started = False

    @property
    def state(self) -> LifecycleState:
        return self._state

    async def run(self) -> None:
        if self._started:
            raise RuntimeError("Startup has already been attempted")
        self._started = True

        try:
            await asyncio.wait_for(self._connect(), timeout=self._connect_timeout)
        except Exception as exc:
            self._state = LifecycleState.FAILED
            logger.error("Unable to connect to the data store: %r", exc)
            raise StartupConnectivityFailure(
                "Unable to connect to the data store", cause=exc
            ) from exc

        self._state = LifecycleState.STORE_CONNECTED
        logger.info("Connection to the data store has been established")

        if self._ready is None:
            self._state = LifecycleState.LISTENING
            await self._listen()
            return

        await self._listen_until_ready(self._ready)

    async def _listen_until_ready(self, ready: ReadyCallback) -> None:
        listener = asyncio.ensure_future(self._listen())
        try:
            while not listener.done():
                if ready():
                    self._state = LifecycleState.LISTENING
                    logger.info("Listener is accepting connections")
                    break
                await asyncio.sleep(self._poll_interval)
            await listener
        except asyncio.CancelledError:
            listener.cancel()
            raise
        except Exception:
            self._state = LifecycleState.FAILED
            raise

        if self._state is not LifecycleState.LISTENING:
            self._state = LifecycleState.FAILED
            logger.error("Listener stopped before accepting connections")


def serve(app: Any, connect: ConnectCallback, settings: Settings | None = None) -> int:
    """Run ``app`` under uvicorn once ``connect`` succeeds. Returns the exit code."""
    settings = settings or get_settings()
    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        log_config=None,
    )
    server = uvicorn.Server(config)
    sequencer = StartupSequencer(
        connect,
        server.serve,
        connect_timeout=settings.store_connect_timeout,
        ready=lambda: server.started,
    )
    try:
        asyncio.run(sequencer.run())
    except StartupConnectivityFailure:
        return 1
    return 1 if sequencer.state is LifecycleState.FAILED else 0
