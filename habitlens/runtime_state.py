"""Runtime state — the latest committed analytics result.

Not persisted. Resets on restart. Writers swap the whole result under the
lock, so readers never observe a half-updated snapshot.
"""

import logging
from dataclasses import dataclass, field
from threading import Lock

log = logging.getLogger(__name__)

_lock = Lock()


@dataclass
class RuntimeState:
    """Mutable runtime state, thread-safe via lock."""
    latest: object = None       # AnalyticsResult | None
    generation: int = 0         # bumped on every commit
    achieved_milestones: set[str] = field(default_factory=set)


_state = RuntimeState()


def get_latest():
    with _lock:
        return _state.latest


def get_generation() -> int:
    with _lock:
        return _state.generation


def commit_result(result, reason: str = "") -> int:
    """Publish a result and record its new milestones. Returns the generation."""
    with _lock:
        _state.latest = result
        _state.generation += 1
        _state.achieved_milestones |= result.milestones.newly_achieved
        gen = _state.generation
    log.debug("Committed analytics generation %d (%s)", gen, reason or "-")
    return gen


def get_achieved_milestones() -> frozenset[str]:
    with _lock:
        return frozenset(_state.achieved_milestones)


def set_achieved_milestones(ids) -> None:
    with _lock:
        _state.achieved_milestones = set(ids)


def reset() -> None:
    global _state
    with _lock:
        _state = RuntimeState()
