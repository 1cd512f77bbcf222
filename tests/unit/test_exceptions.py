"""Unit tests — Exception hierarchy."""

from __future__ import annotations

import pytest

from reflect_guard.exceptions import (
    AuditError,
    AuditWriteError,
    InvalidRuleError,
    ModerationError,
    PostNotFoundError,
    ProfileNotFoundError,
    ReflectGuardError,
    StoreError,
)


@pytest.mark.unit
class TestHierarchy:
    @pytest.mark.parametrize(
        "exc",
        [
            ProfileNotFoundError("u-1"),
            PostNotFoundError("p-1"),
            AuditWriteError("audit_logs", "disk full"),
            InvalidRuleError("r", "(", "unbalanced"),
        ],
    )
    def test_all_inherit_from_base(self, exc: ReflectGuardError) -> None:
        assert isinstance(exc, ReflectGuardError)

    def test_store_errors(self) -> None:
        assert isinstance(ProfileNotFoundError("u-1"), StoreError)
        assert isinstance(PostNotFoundError("p-1"), StoreError)

    def test_audit_write_is_audit_error(self) -> None:
        assert isinstance(AuditWriteError("t", "r"), AuditError)

    def test_invalid_rule_is_moderation_error(self) -> None:
        assert isinstance(InvalidRuleError("r", "(", "bad"), ModerationError)


@pytest.mark.unit
class TestContext:
    def test_profile_not_found_context(self) -> None:
        exc = ProfileNotFoundError("u-7")
        assert exc.user_id == "u-7"
        assert exc.context == {"user_id": "u-7"}
        assert "u-7" in str(exc)

    def test_audit_write_error_fields(self) -> None:
        exc = AuditWriteError("security_alerts", "locked")
        assert exc.table == "security_alerts"
        assert exc.reason == "locked"
        assert "security_alerts" in exc.message

    def test_invalid_rule_fields(self) -> None:
        exc = InvalidRuleError("caps", "[a-", "unterminated set")
        assert exc.rule_name == "caps"
        assert exc.pattern == "[a-"

    def test_repr_includes_context(self) -> None:
        exc = ReflectGuardError("boom", {"k": 1})
        assert repr(exc) == "ReflectGuardError('boom', context={'k': 1})"

    def test_context_defaults_to_empty(self) -> None:
        assert ReflectGuardError("x").context == {}
