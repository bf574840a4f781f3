"""Unit tests for environment-driven settings."""

import pytest

from config.settings import BoxSettings
from connectors.box.errors import ConfigurationError


def test_from_env_reads_box_variables():
    settings = BoxSettings.from_env(
        {
            "BOX_CLIENT_ID": "cid",
            "BOX_CLIENT_SECRET": "csecret",
            "BOX_SERVICE_CLIENT_ID": "sid",
            "BOX_SERVICE_CLIENT_SECRET": "ssecret",
            "BOX_ENTERPRISE_ID": "999",
            "BOX_JWT_PRIVATE_KEY": "-----BEGIN-----\\nabc\\n-----END-----",
            "BOX_JWT_PASSPHRASE": "pw",
            "BOX_HTTP_TIMEOUT": "12.5",
        }
    )
    assert settings.client_id == "cid"
    assert settings.enterprise_id == "999"
    assert settings.jwt_private_key == "-----BEGIN-----\nabc\n-----END-----"
    assert settings.http_timeout == 12.5
    assert settings.folder_info_cache_ttl == 60.0
    settings.require_service_credentials()
    settings.require_user_oauth()


def test_secrets_are_hidden_from_repr():
    settings = BoxSettings(jwt_private_key="PRIVATE", jwt_passphrase="SECRET")
    assert "PRIVATE" not in repr(settings)
    assert "SECRET" not in repr(settings)


def test_bad_number_is_configuration_error():
    with pytest.raises(ConfigurationError):
        BoxSettings.from_env({"BOX_HTTP_TIMEOUT": "soon"})


def test_missing_service_credentials_are_named():
    with pytest.raises(ConfigurationError) as info:
        BoxSettings(service_client_id="sid").require_service_credentials()
    message = str(info.value)
    assert "BOX_ENTERPRISE_ID" in message
    assert "BOX_JWT_PASSPHRASE" in message
    assert "BOX_SERVICE_CLIENT_ID" not in message


def test_missing_user_oauth_is_configuration_error():
    with pytest.raises(ConfigurationError):
        BoxSettings(client_id="cid").require_user_oauth()
