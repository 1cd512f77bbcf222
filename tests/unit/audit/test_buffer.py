"""Unit tests — AuditFallbackBuffer (bounded ring buffer)."""

from __future__ import annotations

import pytest

from reflect_guard.audit.buffer import AuditFallbackBuffer
from reflect_guard.audit.models import AuditLogEntry


def _entry(i: int, **kwargs) -> AuditLogEntry:
    defaults = dict(user_id="u-1", action="access", resource="post", allowed=False, timestamp=float(i))
    defaults.update(kwargs)
    return AuditLogEntry(**defaults)


@pytest.mark.unit
class TestAuditFallbackBuffer:
    def test_capacity_bound_evicts_oldest(self) -> None:
        buffer = AuditFallbackBuffer(capacity=3)
        for i in range(5):
            buffer.append(_entry(i))
        assert len(buffer) == 3
        assert [e.timestamp for e in buffer.entries()] == [4.0, 3.0, 2.0]

    def test_default_capacity(self) -> None:
        buffer = AuditFallbackBuffer()
        assert buffer.capacity == 1000
        for i in range(1001):
            buffer.append(_entry(i))
        assert len(buffer) == 1000
        assert buffer.entries()[-1].timestamp == 1.0

    def test_filters(self) -> None:
        buffer = AuditFallbackBuffer()
        buffer.append(_entry(1, user_id="a", allowed=True))
        buffer.append(_entry(2, user_id="b", action="post_access"))
        buffer.append(_entry(3, user_id="a", resource="connection"))

        assert [e.timestamp for e in buffer.entries(user_id="a")] == [3.0, 1.0]
        assert [e.timestamp for e in buffer.entries(action="post_access")] == [2.0]
        assert [e.timestamp for e in buffer.entries(resource="connection")] == [3.0]
        assert [e.timestamp for e in buffer.entries(allowed=True)] == [1.0]
        assert [e.timestamp for e in buffer.entries(since=2.0)] == [3.0, 2.0]
        assert [e.timestamp for e in buffer.entries(limit=1)] == [3.0]

    def test_clear(self) -> None:
        buffer = AuditFallbackBuffer()
        buffer.append(_entry(1))
        buffer.clear()
        assert len(buffer) == 0
        assert buffer.entries() == []
