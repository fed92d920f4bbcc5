"""Tests for environment configuration."""

import pytest

from src.dynatrace.config import (
    DEFAULT_SLACK_CONNECTION_ID,
    get_dynatrace_env,
    get_sso_url,
    parse_grail_budget,
    validate_dynatrace_config,
)

VALID_ENV = {
    "DT_ENVIRONMENT": "https://abc12345.apps.dynatrace.com/",
    "DT_PLATFORM_TOKEN": "dt0s16.token",
}


class TestGetDynatraceEnv:
    def test_valid_platform_token_env(self):
        env = get_dynatrace_env(VALID_ENV)

        assert env.dt_environment == "https://abc12345.apps.dynatrace.com"
        assert env.dt_platform_token == "dt0s16.token"
        assert env.oauth_client_id is None
        assert env.slack_connection_id == DEFAULT_SLACK_CONNECTION_ID
        assert env.grail_budget_gb == 1000

    def test_oauth_credentials(self):
        env = get_dynatrace_env({
            "DT_ENVIRONMENT": "https://abc12345.apps.dynatracelabs.com",
            "OAUTH_CLIENT_ID": "dt0s02.client",
            "OAUTH_CLIENT_SECRET": "secret",
            "SLACK_CONNECTION_ID": "slack-1",
            "DT_GRAIL_QUERY_BUDGET_GB": "-1",
        })

        assert env.oauth_client_id == "dt0s02.client"
        assert env.slack_connection_id == "slack-1"
        assert env.grail_budget_gb == -1

    def test_missing_environment(self):
        with pytest.raises(ValueError, match="Please set DT_ENVIRONMENT environment variable"):
            get_dynatrace_env({"DT_PLATFORM_TOKEN": "token"})

    def test_missing_credentials(self):
        with pytest.raises(ValueError, match="OAUTH_CLIENT_ID and OAUTH_CLIENT_SECRET, or DT_PLATFORM_TOKEN"):
            get_dynatrace_env({"DT_ENVIRONMENT": "https://abc12345.apps.dynatrace.com"})

    def test_environment_must_use_https(self):
        with pytest.raises(ValueError, match="valid Dynatrace Environment URL"):
            get_dynatrace_env({**VALID_ENV, "DT_ENVIRONMENT": "http://abc12345.apps.dynatrace.com"})

    def test_environment_must_be_platform_url(self):
        with pytest.raises(ValueError, match="valid Dynatrace Platform Environment URL"):
            get_dynatrace_env({**VALID_ENV, "DT_ENVIRONMENT": "https://abc12345.live.dynatrace.com"})

    def test_validate_returns_error_text(self):
        assert validate_dynatrace_config(VALID_ENV) is None
        assert validate_dynatrace_config({}).startswith("Error: ")


class TestParseGrailBudget:
    @pytest.mark.parametrize("raw, expected", [
        (None, 1000),
        ("", 1000),
        ("5", 5),
        ("0.5", 0.5),
        ("-1", -1),
    ])
    def test_valid_values(self, raw, expected):
        assert parse_grail_budget(raw) == expected

    @pytest.mark.parametrize("raw", ["0", "-2", "abc", "nan"])
    def test_invalid_values(self, raw):
        with pytest.raises(ValueError, match="DT_GRAIL_QUERY_BUDGET_GB"):
            parse_grail_budget(raw)


class TestGetSsoUrl:
    def test_production(self):
        assert get_sso_url("https://abc.apps.dynatrace.com", env={}) == "https://sso.dynatrace.com"

    def test_labs(self):
        assert get_sso_url("https://abc.apps.dynatracelabs.com", env={}) == "https://sso.dynatracelabs.com"

    def test_override(self):
        env = {"DT_SSO_URL": "https://sso.example.com/"}

        assert get_sso_url("https://abc.apps.dynatrace.com", env=env) == "https://sso.example.com"
