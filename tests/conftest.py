# tests/conftest.py
import pytest

from support import CLEAN_HTML, SAMPLE_HTML


@pytest.fixture
def sample_html():
    return SAMPLE_HTML


@pytest.fixture
def clean_html():
    return CLEAN_HTML


@pytest.fixture
def no_backoff(monkeypatch):
    """Geen echte wachttijd tussen retries in de tests."""
    import a11y_providers.base as base
    monkeypatch.setattr(base, "backoff_delay_ms", lambda attempt: 0)
