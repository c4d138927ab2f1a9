"""Shared type aliases and protocols."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

# Callback types used by identity strategies and the startup sequencer
LoadPrincipalCallback = Callable[[Any], Awaitable[Any]]
ConnectCallback = Callable[[], Awaitable[None]]
ListenCallback = Callable[[], Awaitable[None]]
ReadyCallback = Callable[[], bool]
