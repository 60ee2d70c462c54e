from __future__ import annotations

from queue import Full, Queue
from threading import Lock
from typing import Any, Dict, List

# Simple in-memory pub/sub for SSE. Not suitable for multi-process deployments.
# Delivery is at-most-once: subscribers must re-fetch state when they (re)connect.
_subs: dict[str, List[Queue]] = {}
_lock = Lock()


def user_channel(user_id: int) -> str:
    return f"user:{int(user_id)}"


def match_channel(match_id: int) -> str:
    return f"match:{int(match_id)}"


def subscribe(channel: str, maxsize: int = 100) -> Queue:
    q: Queue = Queue(maxsize=maxsize)
    with _lock:
        _subs.setdefault(channel, []).append(q)
    return q


def unsubscribe(channel: str, q: Queue) -> None:
    with _lock:
        arr = _subs.get(channel)
        if not arr:
            return
        try:
            arr.remove(q)
        except ValueError:
            pass
        if not arr:
            _subs.pop(channel, None)


def subscriber_count(channel: str) -> int:
    with _lock:
        return len(_subs.get(channel, []))


def publish(channel: str, event: Dict[str, Any]) -> int:
    """Best-effort fan-out; returns how many subscribers received the event."""
    with _lock:
        arr = list(_subs.get(channel, []))
    delivered = 0
    for q in arr:
        try:
            q.put_nowait(event)
            delivered += 1
        except Full:
            # Slow consumer; it will reconcile on reconnect
            pass
    return delivered
