"""
Unit tests for the listener configuration: the pydantic model, the INI file
manager and its migration of older files.
"""

import configparser

import pytest
from pydantic import ValidationError

from plexsync.exceptions import ConfigurationError
from plexsync.models.config import ListenerConfig, parse_connection_string
from plexsync.storage.config_manager import DEFAULT_MAPPINGS, ConfigManager

from conftest import CONNECTION_STRING, CONTAINER_URL


# -----------------------------------------------------------------------------
# Model validation
# -----------------------------------------------------------------------------

def test_connection_string_values_may_contain_equals():
    parts = parse_connection_string(CONNECTION_STRING)
    assert parts["SharedAccessKey"] == "c2VjcmV0LWtleQ=="
    assert parts["Endpoint"] == "sb://plexsync-test.servicebus.windows.net/"


def test_valid_config_is_normalized(config_kwargs):
    config = ListenerConfig(**config_kwargs)

    assert config.sas_token == "sv=2021-08-06&sig=abc%2F123"
    assert config.log_level == "INFO"
    assert config.service_bus_credentials["SharedAccessKeyName"] == (
        "RootManageSharedAccessKey"
    )
    assert dict(config.category_mapping) == config_kwargs["media_mappings"]
    with pytest.raises(TypeError):
        config.category_mapping["tv"] = "/media/tv"


@pytest.mark.parametrize(
    "field, value",
    [
        ("connection_string", "Endpoint=sb://ns.servicebus.windows.net/"),
        (
            "connection_string",
            "Endpoint=ftp://ns;SharedAccessKeyName=a;SharedAccessKey=b",
        ),
        ("listen_queue", ""),
        ("max_concurrent_calls", 0),
        ("max_concurrent_calls", 33),
        ("receive_timeout", 231),
        ("container_url", "blob.core.windows.net/hot"),
        ("media_mappings", {}),
        ("media_mappings", {"movies": "relative/path"}),
        ("media_mappings", {"movies": "/media/a", "Movies": "/media/b"}),
        ("lock_renewal_interval", 4),
        ("lock_renewal_interval", 151),
        ("log_level", "LOUD"),
        ("success_queue", "plex-downloads"),
    ],
)
def test_invalid_settings_are_rejected(config_kwargs, field, value):
    config_kwargs[field] = value
    with pytest.raises(ValidationError):
        ListenerConfig(**config_kwargs)


def test_secrets_are_hidden_from_repr(config_kwargs):
    text = repr(ListenerConfig(**config_kwargs))
    assert "SharedAccessKey" not in text
    assert "sig=" not in text


def test_case_duplicate_categories_are_named_in_the_error(config_kwargs):
    config_kwargs["media_mappings"] = {"tv": "/media/tv", "TV": "/media/TV"}
    with pytest.raises(ValidationError, match="differ only by case"):
        ListenerConfig(**config_kwargs)


# -----------------------------------------------------------------------------
# INI file management
# -----------------------------------------------------------------------------

def test_missing_file_raises_configuration_error(tmp_path):
    with pytest.raises(ConfigurationError, match="plexsync init"):
        ConfigManager(tmp_path / "missing.ini").load_config()


def test_saved_config_loads_back(tmp_path):
    config_file = tmp_path / "plexsync" / "config.ini"
    manager = ConfigManager(config_file)
    manager.save_new_config(
        {
            "connection_string": CONNECTION_STRING,
            "container_url": CONTAINER_URL,
            "sas_token": "sv=2021&sig=a%2Bb%3D",
            "verify_size": True,
            "media_mappings": {"Movies": str(tmp_path / "Movies")},
        }
    )

    config = ConfigManager(config_file).load_config()

    assert config.connection_string == CONNECTION_STRING
    # Raw values, no '%' interpolation
    assert config.sas_token == "sv=2021&sig=a%2Bb%3D"
    assert config.verify_size is True
    # Category names keep their case
    assert config.media_mappings == {"Movies": str(tmp_path / "Movies")}
    assert config.listen_queue == "plex-downloads"
    assert config.config_path == str(config_file.parent)


def test_new_config_uses_default_mappings(tmp_path):
    config_file = tmp_path / "config.ini"
    ConfigManager(config_file).save_new_config()

    parser = configparser.ConfigParser(interpolation=None)
    parser.read(config_file, encoding="utf-8")

    assert dict(parser["media_mappings"]) == DEFAULT_MAPPINGS
    assert parser["service_bus"]["max_concurrent_calls"] == "1"


def test_overrides_win_over_file_values(tmp_path):
    config_file = tmp_path / "config.ini"
    ConfigManager(config_file).save_new_config(
        {"connection_string": CONNECTION_STRING, "container_url": CONTAINER_URL}
    )

    config = ConfigManager(config_file).load_config({"max_concurrent_calls": 4})

    assert config.max_concurrent_calls == 4


def test_old_files_are_migrated(tmp_path):
    """A file written before the download and logging sections gains them."""
    config_file = tmp_path / "config.ini"
    config_file.write_text(
        "[service_bus]\n"
        f"connection_string = {CONNECTION_STRING}\n"
        "listen_queue = incoming\n"
        "success_queue = done\n"
        "error_queue = failed\n"
        "\n"
        "[blob_storage]\n"
        f"container_url = {CONTAINER_URL}\n"
        "\n"
        "[media_mappings]\n"
        "movies = /media/movies\n",
        encoding="utf-8",
    )

    config = ConfigManager(config_file).load_config()

    assert config.listen_queue == "incoming"
    assert config.verify_size is False
    assert config.max_concurrent_calls == 1
    migrated = config_file.read_text(encoding="utf-8")
    assert "verify_size = false" in migrated
    assert "receive_timeout = 60" in migrated
    assert "lock_renewal_interval = 30" in migrated


@pytest.mark.parametrize(
    "line",
    ["max_concurrent_calls = lots", "max_concurrent_calls = 64"],
)
def test_bad_values_raise_configuration_error(tmp_path, line):
    config_file = tmp_path / "config.ini"
    ConfigManager(config_file).save_new_config(
        {"connection_string": CONNECTION_STRING, "container_url": CONTAINER_URL}
    )
    text = config_file.read_text(encoding="utf-8")
    config_file.write_text(
        text.replace("max_concurrent_calls = 1", line), encoding="utf-8"
    )

    with pytest.raises(ConfigurationError):
        ConfigManager(config_file).load_config()


def test_unparseable_file_raises_configuration_error(tmp_path):
    config_file = tmp_path / "config.ini"
    config_file.write_text("this is not an ini file\n", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        ConfigManager(config_file).load_config()


def test_read_exposes_raw_values_without_validation(tmp_path):
    config_file = tmp_path / "config.ini"
    ConfigManager(config_file).save_new_config(
        {"media_mappings": {"movies": "relative/path"}}
    )
    manager = ConfigManager(config_file)

    manager.read()
    values = manager.get_config_as_dict()

    assert values["media_mappings"] == {"movies": "relative/path"}
    assert values["connection_string"] == ""
    assert values["lock_renewal_interval"] == 30
    with pytest.raises(ConfigurationError):
        manager.load_config()


def test_read_requires_the_file(tmp_path):
    with pytest.raises(ConfigurationError, match="plexsync init"):
        ConfigManager(tmp_path / "missing.ini").read()
