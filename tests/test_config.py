"""
Tests for settings, logging and errors.
"""

import pytest
import structlog
from pydantic import ValidationError

from polyacl.core.config import AclSettings, DatabaseSettings, Settings
from polyacl.core.context import (
    add_resource_context,
    get_current_permission_prefix,
    get_current_resource_type,
    resource_type_scope,
)
from polyacl.core.exceptions import NotFoundError
from polyacl.core.logging import configure_logging

from sample_app import Article


def test_acl_defaults():
    acl = AclSettings()

    assert acl.policy_engine == "resource"
    assert acl.any_suffix == "Any"
    assert acl.separator == "."
    assert not acl.strict_permission_grants
    assert not acl.ignore_duplicate_grants


def test_acl_settings_from_env(monkeypatch):
    monkeypatch.setenv("ACL_STRICT_PERMISSION_GRANTS", "true")
    monkeypatch.setenv("ACL_ANY_SUFFIX", "All")

    acl = AclSettings()

    assert acl.strict_permission_grants
    assert acl.any_suffix == "All"


def test_sqlite_engine_options_skip_pooling():
    assert DatabaseSettings(url="sqlite+aiosqlite:///:memory:").engine_options() == {"echo": False}

    options = DatabaseSettings(url="postgresql+asyncpg://u:p@db/acl", pool_size=3).engine_options()
    assert options["pool_size"] == 3
    assert options["max_overflow"] == 10


def test_settings_validation():
    with pytest.raises(ValidationError):
        Settings(environment="moon")
    with pytest.raises(ValidationError):
        Settings(log_format="xml")


def test_resource_type_scope():
    assert get_current_resource_type() is None

    with resource_type_scope(Article) as tag:
        assert tag == "Article"
        assert get_current_resource_type() == "Article"
        assert get_current_permission_prefix() == "article"
        assert add_resource_context(None, "info", {"event": "x"})["resource_type"] == "Article"

    assert get_current_resource_type() is None
    assert "resource_type" not in add_resource_context(None, "info", {"event": "x"})


def test_configure_logging_text_renderer():
    configure_logging(Settings(log_format="text", log_level="DEBUG"))
    try:
        structlog.get_logger().debug("configured", component="tests")
    finally:
        structlog.reset_defaults()


def test_error_serialization():
    error = NotFoundError("One or more roles do not exist", missing=["ghost"])

    assert error.to_dict() == {
        "code": "NOT_FOUND",
        "message": "One or more roles do not exist",
        "details": {"missing": ["ghost"]},
    }
