"""
Tests for settings module.

Tests endpoint binding: mandatory keys, defaults, numeric parsing, service
name validation and environment variable loading.
"""
from __future__ import annotations

import pytest

from swiftfs.errors import SwiftConfigurationError
from swiftfs.settings import (
    DEFAULT_PART_SIZE,
    Settings,
    bind,
    build_instance_prefix,
    config_from_env,
    create_settings_from_env,
)

PREFIX = "fs.swift.service.local"


def _conf(**overrides):
    conf = {
        PREFIX + ".auth.url": "http://keystone.test:5000/v2.0/tokens",
        PREFIX + ".username": "user",
        PREFIX + ".password": "secret",
    }
    for key, value in overrides.items():
        full_key = PREFIX + "." + key.replace("_", ".")
        if value is None:
            conf.pop(full_key, None)
        else:
            conf[full_key] = value
    return conf


class TestSettings:
    """Test Settings dataclass validation."""

    def test_minimal_valid_settings(self):
        """Test creating settings with minimal required values."""
        settings = Settings(service="local", auth_url="http://auth.test/v2.0/tokens",
                            username="user", password="pw")
        assert settings.container == "local"
        assert settings.retry_count == 3
        assert settings.connect_timeout_s == 15.0
        assert settings.proxy_port == 8080
        assert settings.auth_method == "keystone"
        assert settings.part_size == DEFAULT_PART_SIZE
        assert settings.use_public_url is False
        assert settings.secret == "pw"

    def test_api_key_is_the_secret_without_password(self):
        settings = Settings(service="local", auth_url="http://auth.test/", username="user", api_key="k")
        assert settings.secret == "k"

    def test_missing_secret_raises(self):
        with pytest.raises(SwiftConfigurationError, match="password or an api key"):
            Settings(service="local", auth_url="http://auth.test/", username="user")

    def test_both_secrets_raise(self):
        with pytest.raises(SwiftConfigurationError, match="not both"):
            Settings(service="local", auth_url="http://auth.test/", username="user",
                     password="pw", api_key="k")

    def test_relative_auth_url_raises(self):
        with pytest.raises(SwiftConfigurationError, match="absolute URI"):
            Settings(service="local", auth_url="/v2.0/tokens", username="user", password="pw")

    def test_unknown_auth_method_raises(self):
        with pytest.raises(SwiftConfigurationError, match="Unknown auth_method"):
            Settings(service="local", auth_url="http://auth.test/", username="user",
                     password="pw", auth_method="kerberos")

    @pytest.mark.parametrize("field,value", [
        ("retry_count", -1),
        ("connect_timeout_s", 0),
        ("part_size", 0),
    ])
    def test_out_of_range_numbers_raise(self, field, value):
        with pytest.raises(SwiftConfigurationError):
            Settings(service="local", auth_url="http://auth.test/", username="user",
                     password="pw", **{field: value})

    def test_container_with_slash_raises(self):
        with pytest.raises(SwiftConfigurationError, match="Invalid container"):
            Settings(service="local", auth_url="http://auth.test/", username="user",
                     password="pw", container="a/b")

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            Settings(service="local", auth_url="", username="user", password="pw")


class TestBind:
    """Test binding a filesystem URI to its configuration keys."""

    def test_instance_prefix(self):
        assert build_instance_prefix("local") == PREFIX

    def test_bind_defaults(self):
        settings = bind("swift://local/", _conf())
        assert settings.service == "local"
        assert settings.auth_url == "http://keystone.test:5000/v2.0/tokens"
        assert settings.username == "user"
        assert settings.password == "secret"
        assert settings.api_key is None
        assert settings.tenant is None
        assert settings.region is None
        assert settings.retry_count == 3
        assert settings.connect_timeout_s == 15.0

    def test_bind_optional_keys(self):
        settings = bind("swift://local/data", _conf(
            tenant="tenant", region="RegionOne", public="true",
            retry_count="5", connect_timeout="2500", proxy_host="proxy.test",
            proxy_port="3128", auth_method="SWAUTH", container="bucket",
            partsize="1024"))
        assert settings.tenant == "tenant"
        assert settings.region == "RegionOne"
        assert settings.use_public_url is True
        assert settings.retry_count == 5
        assert settings.connect_timeout_s == 2.5
        assert settings.proxy_host == "proxy.test"
        assert settings.proxy_port == 3128
        assert settings.auth_method == "swauth"
        assert settings.container == "bucket"
        assert settings.part_size == 1024

    @pytest.mark.parametrize("missing", ["auth_url", "username"])
    def test_missing_mandatory_key_names_the_key(self, missing):
        key = PREFIX + "." + missing.replace("_", ".")
        with pytest.raises(SwiftConfigurationError, match=key.replace(".", r"\.")):
            bind("swift://local/", _conf(**{missing: None}))

    def test_missing_secret_names_both_keys(self):
        with pytest.raises(SwiftConfigurationError, match="password.*apikey"):
            bind("swift://local/", _conf(password=None))

    def test_api_key_only(self):
        settings = bind("swift://local/", _conf(password=None, apikey="k-1"))
        assert settings.api_key == "k-1"
        assert settings.password is None

    def test_password_wins_over_api_key(self):
        settings = bind("swift://local/", _conf(apikey="k-1"))
        assert settings.password == "secret"
        assert settings.api_key is None

    def test_malformed_number_names_the_key(self):
        with pytest.raises(SwiftConfigurationError, match=r"retry\.count"):
            bind("swift://local/", _conf(retry_count="three"))

    def test_malformed_boolean_raises(self):
        with pytest.raises(SwiftConfigurationError, match="boolean"):
            bind("swift://local/", _conf(public="yes"))

    def test_dotted_host_rejected(self):
        with pytest.raises(SwiftConfigurationError, match="short hostnames"):
            bind("swift://container.service/", _conf())

    def test_missing_host_rejected(self):
        with pytest.raises(SwiftConfigurationError):
            bind("swift:///path", _conf())

    def test_other_services_keys_ignored(self):
        conf = _conf()
        conf["fs.swift.service.other.username"] = "someone-else"
        assert bind("swift://local/", conf).username == "user"


class TestEnvironment:
    """Test loading settings from environment variables."""

    def test_config_from_env_maps_suffixes(self):
        environ = {
            "SWIFTFS_LOCAL_AUTH_URL": "http://auth.test/v2.0/tokens",
            "SWIFTFS_LOCAL_USERNAME": "user",
            "SWIFTFS_LOCAL_APIKEY": "k",
            "SWIFTFS_LOCAL_RETRY_COUNT": "1",
            "SWIFTFS_OTHER_USERNAME": "ignored",
        }
        conf = config_from_env("local", environ)
        assert conf == {
            PREFIX + ".auth.url": "http://auth.test/v2.0/tokens",
            PREFIX + ".username": "user",
            PREFIX + ".apikey": "k",
            PREFIX + ".retry.count": "1",
        }

    def test_create_settings_from_env(self):
        """Uses the variables set by the autouse test_env fixture."""
        settings = create_settings_from_env("swift://local/")
        assert settings.username == "user"
        assert settings.password == "secret"
        assert settings.retry_backoff_s == 0

    def test_create_settings_from_env_fresh_instance(self):
        first = create_settings_from_env("swift://local/")
        second = create_settings_from_env("swift://local/")
        assert first == second
        assert first is not second

    def test_missing_env_raises(self):
        with pytest.raises(SwiftConfigurationError, match="auth.url"):
            create_settings_from_env("swift://other/", environ={})
