"""Tests for endpoints, retry policy and environment settings."""

import pytest

from tev_mcp.config import (
    DEFAULT_EXECUTABLE,
    DEFAULT_PORT,
    Endpoint,
    RetryPolicy,
    Settings,
)


def test_default_endpoint():
    endpoint = Endpoint()
    assert endpoint.hostname == "127.0.0.1:14158"
    assert endpoint.is_default
    assert str(endpoint) == "127.0.0.1:14158"


def test_parse_host_and_port():
    endpoint = Endpoint.parse("192.168.1.5:15000")
    assert endpoint == Endpoint("192.168.1.5", 15000)
    assert not endpoint.is_default


def test_parse_bare_host_gets_default_port():
    assert Endpoint.parse("localhost") == Endpoint("localhost", DEFAULT_PORT)


def test_parse_ipv6_brackets():
    assert Endpoint.parse("[::1]:14158") == Endpoint("::1", 14158)
    assert Endpoint.parse("[::1]") == Endpoint("::1", DEFAULT_PORT)


def test_parse_bare_ipv6_gets_default_port():
    """Without brackets the last group of an IPv6 address is not a port."""
    assert Endpoint.parse("::1") == Endpoint("::1", DEFAULT_PORT)
    assert Endpoint.parse("fe80::1:2") == Endpoint("fe80::1:2", DEFAULT_PORT)


@pytest.mark.parametrize("hostname", ["host:abc", "host:0", "host:70000"])
def test_parse_invalid_port(hostname):
    with pytest.raises(ValueError):
        Endpoint.parse(hostname)


def test_retry_policy_defaults_bounded():
    """Default retries wait a few seconds, not forever."""
    retry = RetryPolicy()
    assert 1 <= retry.attempts * retry.delay <= 10


def test_retry_policy_validation():
    with pytest.raises(ValueError):
        RetryPolicy(attempts=0)
    with pytest.raises(ValueError):
        RetryPolicy(delay=-1)


def test_settings_defaults():
    settings = Settings.from_env({})
    assert settings.endpoint == Endpoint()
    assert settings.executable == DEFAULT_EXECUTABLE
    assert settings.retry == RetryPolicy()


def test_settings_from_env():
    settings = Settings.from_env({
        "TEV_HOSTNAME": "127.0.0.1:14200",
        "TEV_EXECUTABLE": "/opt/tev/tev",
        "TEV_SPAWN_ATTEMPTS": "5",
        "TEV_SPAWN_DELAY": "0.1",
    })
    assert settings.endpoint == Endpoint("127.0.0.1", 14200)
    assert settings.executable == "/opt/tev/tev"
    assert settings.retry == RetryPolicy(attempts=5, delay=0.1)


def test_settings_empty_env_values_use_defaults():
    settings = Settings.from_env({
        "TEV_HOSTNAME": "",
        "TEV_EXECUTABLE": "",
        "TEV_SPAWN_ATTEMPTS": "",
        "TEV_SPAWN_DELAY": "",
    })
    assert settings == Settings()
