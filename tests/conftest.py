"""Test configuration."""

import os
from pathlib import Path

import pytest
from pytest import Config

# Keep tests off real models, networks and caches
os.environ.update(
    {
        "TESTING": "true",
        "NER_ENABLED": "false",
        "LLM_EXTRACTION_ENABLED": "false",
        "GEOCODING_RATE_LIMIT": "0",
    }
)
os.environ.pop("REDIS_URL", None)
os.environ.pop("OPENROUTER_API_KEY", None)

from place_importer.core.logging import configure_logging  # noqa: E402
from place_importer.models.address import CandidateAddress  # noqa: E402

fixture = pytest.fixture


@fixture(scope="session")
def project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


@fixture
def birmingham_candidate() -> CandidateAddress:
    """Office candidate with every address component known."""
    return CandidateAddress(
        display_name="Birmingham Office",
        raw_text="Birmingham Office\n420 North 20th Street\nSuite 2400\nBirmingham, AL\n35203-3289",
        normalized_text="420 North 20th Street\nSuite 2400\nBirmingham, AL 35203-3289",
        city="Birmingham",
        state="AL",
        postal_code="35203-3289",
    )


@fixture
def springfield() -> CandidateAddress:
    return CandidateAddress(
        raw_text="123 Main St, Springfield, IL 62704",
        normalized_text="123 Main St\nSpringfield, IL 62704",
        city="Springfield",
        state="IL",
        postal_code="62704",
    )


@fixture
def sleeps() -> list[float]:
    """Delays requested by code under test."""
    return []


@fixture
def fake_sleep(sleeps: list[float]):
    """Async sleep replacement that records delays and returns at once."""

    async def _sleep(delay: float) -> None:
        sleeps.append(delay)

    return _sleep


def pytest_configure(config: Config) -> None:
    """Configure pytest.

    Args:
        config: Pytest configuration object
    """
    configure_logging(testing=True)
    config.addinivalue_line("markers", "integration: mark test as an integration test")
