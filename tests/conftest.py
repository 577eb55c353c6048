import time

import platformdirs
import pytest
import requests

_NETWORK_BLOCK_MSG = (
    "Network access is blocked during tests. Mock requests.* or Session.request."
)

_ISOLATED_ENV_VARS = (
    "GITHUB_OUTPUT",
    "GITHUB_TOKEN",
    "RESOURCE_REPO",
    "MANIFESTOR_STATIC_DIR",
    "MANIFESTOR_DIST_DIR",
    "MANIFESTOR_LOG_LEVEL",
)


def _block_network(*_args, **_kwargs):
    """
    Prevent network calls in tests by raising a RuntimeError.

    Raises:
        RuntimeError: with `_NETWORK_BLOCK_MSG` indicating that network access is blocked during tests.
    """
    raise RuntimeError(_NETWORK_BLOCK_MSG)


def pytest_configure(config):
    """Register the markers used across the suite."""
    for marker in (
        "unit: fast isolated tests",
        "core_downloads: core binary manifest tests",
        "rules: rule index tests",
        "configuration: configuration and CLI tests",
    ):
        config.addinivalue_line("markers", marker)


@pytest.fixture(autouse=True)
def _isolate_test_environment(tmp_path_factory, monkeypatch):
    """
    Point platformdirs at a temporary directory and clear environment variables
    that would change configuration or signaling behavior.
    """
    base = tmp_path_factory.mktemp("manifestor")
    config_dir = base / "config"
    log_dir = base / "log"
    for path in (config_dir, log_dir):
        path.mkdir(parents=True, exist_ok=True)

    for env_var in _ISOLATED_ENV_VARS:
        monkeypatch.delenv(env_var, raising=False)

    monkeypatch.setattr(
        platformdirs, "user_config_dir", lambda *_args, **_kwargs: str(config_dir)
    )
    monkeypatch.setattr(
        platformdirs, "user_log_dir", lambda *_args, **_kwargs: str(log_dir)
    )


def pytest_runtest_setup():
    """
    Prevent real network requests during tests by replacing HTTP entry points with blocking callables.
    """
    requests.get = _block_network
    requests.post = _block_network
    requests.head = _block_network
    requests.Session.request = _block_network


@pytest.fixture(autouse=True)
def _mock_time_sleep(monkeypatch):
    """
    Make time.sleep instant for all tests to prevent delays.

    Retry and API-delay paths call time.sleep(); tests that assert on delays
    patch it again with a mock.
    """
    monkeypatch.setattr(time, "sleep", lambda *_args, **_kwargs: None)


@pytest.fixture
def base_config(tmp_path):
    """Configuration dict with output directories inside tmp_path."""
    return {
        "UPSTREAM_REPO": "SagerNet/sing-box",
        "RESOURCE_REPO": "owner/resources",
        "RULES_REPO": "MetaCubeX/meta-rules-dat",
        "RULES_BRANCH": "sing",
        "STATIC_DIR": str(tmp_path / "static"),
        "DIST_DIR": str(tmp_path / "dist"),
        "GITHUB_TOKEN": None,
        "LOG_LEVEL": "INFO",
        "LOG_DIR": None,
    }


@pytest.fixture
def github_output(tmp_path, monkeypatch):
    """Route CI signals into a temporary GITHUB_OUTPUT file and return its path."""
    output = tmp_path / "github_output"
    output.write_text("")
    monkeypatch.setenv("GITHUB_OUTPUT", str(output))
    return output
