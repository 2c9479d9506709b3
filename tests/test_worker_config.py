import pytest

from worker.config import WorkerSettings
from worker.errors import ConfigurationError


_ENV_NAMES = [
    "EIN_EMAIL",
    "EIN_PASSWORD",
    "EINPRESSWIRE_EMAIL",
    "EINPRESSWIRE_PASSWORD",
    "EIN_PAYMENT_MODE",
    "EIN_USE_PREPAID_CREDITS",
    "EIN_BASE_URL",
    "PLAYWRIGHT_HEADLESS",
    "LOCATOR_TIMEOUT_MS",
    "AUTOMATION_RETRY_MAX_DELAY",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_missing_credentials_is_a_configuration_error():
    with pytest.raises(ConfigurationError) as exc:
        WorkerSettings.from_env()
    assert exc.value.retryable is False


def test_reads_credentials_and_overrides(monkeypatch):
    monkeypatch.setenv("EINPRESSWIRE_EMAIL", "bot@bravapress.test")
    monkeypatch.setenv("EINPRESSWIRE_PASSWORD", "pw")
    monkeypatch.setenv("EIN_BASE_URL", "https://staging.newswire.test/")
    monkeypatch.setenv("PLAYWRIGHT_HEADLESS", "false")
    monkeypatch.setenv("LOCATOR_TIMEOUT_MS", "1500")

    settings = WorkerSettings.from_env()

    assert settings.email == "bot@bravapress.test"
    assert settings.base_url == "https://staging.newswire.test"
    assert settings.headless is False
    assert settings.locator_timeout_ms == 1500
    assert settings.payment_mode == "auto"


@pytest.mark.parametrize(
    "env, expected",
    [
        ({"EIN_PAYMENT_MODE": "credit"}, "credit"),
        ({"EIN_USE_PREPAID_CREDITS": "true"}, "credit"),
        ({"EIN_USE_PREPAID_CREDITS": "manual"}, "manual"),
        ({"EIN_USE_PREPAID_CREDITS": "false"}, "auto"),
        ({"EIN_PAYMENT_MODE": "manual", "EIN_USE_PREPAID_CREDITS": "true"}, "manual"),
    ],
)
def test_payment_mode(monkeypatch, env, expected):
    monkeypatch.setenv("EIN_EMAIL", "e@x.test")
    monkeypatch.setenv("EIN_PASSWORD", "pw")
    for name, value in env.items():
        monkeypatch.setenv(name, value)

    assert WorkerSettings.from_env().payment_mode == expected


def test_bad_payment_mode_and_ints_are_rejected(monkeypatch):
    monkeypatch.setenv("EIN_EMAIL", "e@x.test")
    monkeypatch.setenv("EIN_PASSWORD", "pw")
    monkeypatch.setenv("EIN_PAYMENT_MODE", "barter")
    with pytest.raises(ConfigurationError):
        WorkerSettings.from_env()

    monkeypatch.setenv("EIN_PAYMENT_MODE", "auto")
    monkeypatch.setenv("LOCATOR_TIMEOUT_MS", "soon")
    with pytest.raises(ConfigurationError):
        WorkerSettings.from_env()


def test_retry_max_delay_accepts_fractions(monkeypatch):
    monkeypatch.setenv("EIN_EMAIL", "e@x.test")
    monkeypatch.setenv("EIN_PASSWORD", "pw")
    monkeypatch.setenv("AUTOMATION_RETRY_MAX_DELAY", "2.5")

    assert WorkerSettings.from_env().retry_max_delay == 2.5

    monkeypatch.setenv("AUTOMATION_RETRY_MAX_DELAY", "later")
    with pytest.raises(ConfigurationError):
        WorkerSettings.from_env()


def test_url_resolution():
    settings = WorkerSettings(email="e", password="p", base_url="https://www.einpresswire.com")

    assert settings.url("/pricing") == "https://www.einpresswire.com/pricing"
    assert settings.url("pricing") == "https://www.einpresswire.com/pricing"
    assert settings.url("https://other.test/x") == "https://other.test/x"
    assert settings.url("") == "https://www.einpresswire.com"
