"""
Unit test configuration.

Unit tests must see only the configuration they set themselves: no .env file
and no signing secrets inherited from the developer's shell.
"""

import pytest

_LEAKY_ENV = ("JWT_SECRET", "SECRET_KEY", "JWT_PRIVATE_KEY", "JWT_PUBLIC_KEY", "ENV")


@pytest.fixture(autouse=True)
def disable_dotenv_loading(monkeypatch):
    """Prevent pydantic-settings from loading .env files in all unit tests."""
    import pydantic_settings.sources.providers.dotenv as ps_dotenv

    monkeypatch.setattr(ps_dotenv, "dotenv_values", lambda *a, **kw: {})
    for name in _LEAKY_ENV:
        monkeypatch.delenv(name, raising=False)
