from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

RELOAD_MESSAGE = "reload"


class WatchKind(str, Enum):
    """Role of a watched root in the reload pipeline."""

    TEMPLATE = "template"
    STATIC = "static"


class ChangeKind(str, Enum):
    """Filesystem change classification emitted by the watcher."""

    WRITE = "write"
    CREATE = "create"
    REMOVE = "remove"
    RENAME = "rename"


RELOAD_TRIGGER_KINDS = frozenset({ChangeKind.WRITE, ChangeKind.CREATE})


@dataclass(frozen=True)
class WatchTarget:
    """One watched root directory."""

    path: Path
    kind: WatchKind


@dataclass(frozen=True)
class ChangeEvent:
    """A single change observed on a watched file."""

    path: Path
    kind: ChangeKind


@dataclass(frozen=True)
class ReloadOutcome:
    """Result of handling one change event in the reload coordinator."""

    path: Path
    reparsed: bool
    delivered: int


class IdleState(str, Enum):
    """States of the idle-shutdown guard."""

    IDLE = "idle"
    ACTIVE = "active"
    ARMED = "armed"
    TERMINATED = "terminated"


class IdleEvent(str, Enum):
    """Events that drive idle-shutdown transitions."""

    CLIENT_REGISTERED = "client_registered"
    CLIENT_UNREGISTERED = "client_unregistered"
    LAST_CLIENT_UNREGISTERED = "last_client_unregistered"
    TIMER_FIRED = "timer_fired"


def transition_idle_state(current: IdleState, event: IdleEvent) -> IdleState:
    """Compute the next idle-shutdown state for a given event.

    Invalid transitions raise ValueError. TERMINATED has no outgoing edges.
    """

    if current == IdleState.TERMINATED:
        raise ValueError(f"Invalid idle transition: {current} -> {event}")

    if event == IdleEvent.CLIENT_REGISTERED:
        return IdleState.ACTIVE

    if current == IdleState.ACTIVE:
        if event == IdleEvent.CLIENT_UNREGISTERED:
            return IdleState.ACTIVE
        if event == IdleEvent.LAST_CLIENT_UNREGISTERED:
            return IdleState.ARMED
        raise ValueError(f"Invalid idle transition: {current} -> {event}")

    if current == IdleState.ARMED:
        if event == IdleEvent.TIMER_FIRED:
            return IdleState.TERMINATED
        raise ValueError(f"Invalid idle transition: {current} -> {event}")

    if current == IdleState.IDLE:
        raise ValueError(f"Invalid idle transition: {current} -> {event}")

    raise ValueError(f"Unknown idle state: {current}")
