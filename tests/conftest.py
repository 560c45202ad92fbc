"""
Root conftest for all tests.

Only shared pytest configuration lives here; fakes and fixtures for unit
tests are in tests/unit/conftest.py.
"""

import pytest


def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests (no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests that talk to real hosting services"
    )


@pytest.fixture(autouse=True)
def clear_connector_env(monkeypatch):
    """Keep developer credentials and store settings out of the tests."""
    for name in (
        "CONTEXT_CONNECTORS_STORE_PATH",
        "GITHUB_TOKEN",
        "GITLAB_TOKEN",
        "BITBUCKET_TOKEN",
        "AUGMENT_API_TOKEN",
        "AUGMENT_API_URL",
        "CC_S3_BUCKET",
        "CC_S3_PREFIX",
        "CC_S3_REGION",
        "CC_S3_ENDPOINT",
        "CC_S3_FORCE_PATH_STYLE",
        "AWS_REGION",
    ):
        monkeypatch.delenv(name, raising=False)
