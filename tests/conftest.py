"""Root pytest configuration for mobile-services tests."""
import pytest

from mobile_services.api import MobileServiceApi
from mobile_services.settings import Settings

from .fakes.fake_channel import FakeChannel

SERVICE = "todolist"


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "slow: mark test as slow (may take significant time)"
    )


# Set up test environment variables
@pytest.fixture(autouse=True)
def test_env(monkeypatch):
    """Automatically set up test environment variables."""
    monkeypatch.setenv("MOBILE_SUBSCRIPTION_ID", "0000-1111")
    monkeypatch.setenv("MOBILE_MANAGEMENT_ENDPOINT", "https://management.example.test")
    for var in ("MOBILE_MANAGEMENT_CERT", "MOBILE_MANAGEMENT_KEY", "MOBILE_API_VERSION",
                "MOBILE_HTTP_TIMEOUT", "MOBILE_ACTION_TIMEOUT"):
        monkeypatch.delenv(var, raising=False)


# Standardized test fixtures
@pytest.fixture
def settings():
    """Standard test settings."""
    return Settings(
        subscription_id="0000-1111",
        management_endpoint="https://management.example.test",
    )


@pytest.fixture
def channel():
    """Fake channel seeded with one service and its settings objects."""
    return FakeChannel({
        f"{SERVICE}/settings": {"dynamicSchemaEnabled": True, "name": SERVICE},
        f"{SERVICE}/livesettings": {"clientSecret": "live-secret", "clientID": "live-id", "packageSID": None},
        f"{SERVICE}/authsettings": [
            {"provider": "facebook", "appId": "fb-id", "secret": "fb-secret"},
            {"provider": "twitter", "appId": "tw-id", "secret": "tw-secret"},
        ],
        f"{SERVICE}/apns/settings": {"mode": "dev", "password": "pw", "certificate": "cert"},
        f"{SERVICE}/logsettings": {"logLevel": "error"},
    })


@pytest.fixture
def api(channel):
    """Management API over the fake channel."""
    return MobileServiceApi(channel)
