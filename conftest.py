# Ensure tests import `feed_gateway` from this checkout even when it is not installed.
import os
import sys

import pytest

SERVICE_ROOT = os.path.dirname(__file__)

if SERVICE_ROOT not in sys.path:
    sys.path.insert(0, SERVICE_ROOT)

TEST_SERVER_URL = "https://proxy.example"


@pytest.fixture
def server_url():
    return TEST_SERVER_URL


@pytest.fixture
def no_auth(monkeypatch):
    """Run with auth disabled regardless of the AUTH_TOKEN environment."""
    monkeypatch.setattr("feed_gateway.auth.AUTH_TOKEN", "")


@pytest.fixture
def auth_token(monkeypatch):
    token = "s3cret-token"
    monkeypatch.setattr("feed_gateway.auth.AUTH_TOKEN", token)
    return token
