import configparser

import pytest

from twspace_dl.exceptions import ConfigurationError
from twspace_dl.models.config import DEFAULT_TEMPLATE, DownloaderConfig
from twspace_dl.storage.config_manager import ConfigManager


def test_missing_file_uses_defaults(tmp_path) -> None:
    config = ConfigManager(tmp_path / "config.ini").load_config()

    assert config.template == DEFAULT_TEMPLATE
    assert config.max_workers == 4
    assert config.keep_recorded is True
    assert config.fail_fast is False
    assert config.guest_token_attempts == 5


def test_saved_config_round_trips_templates(tmp_path) -> None:
    path = tmp_path / "twspace-dl" / "config.ini"
    manager = ConfigManager(path)

    manager.save_new_config({"template": "space-%{title}-%{rest_id}", "fail_fast": True})
    config = ConfigManager(path).load_config()

    assert config.template == "space-%{title}-%{rest_id}"
    assert config.fail_fast is True
    assert config.save_dir == "."


def test_cli_options_override_file(tmp_path) -> None:
    path = tmp_path / "config.ini"
    ConfigManager(path).save_new_config({"max_workers": 2})

    config = ConfigManager(path).load_config({"max_workers": 8, "sources": ["abc"]})

    assert config.max_workers == 8
    assert config.sources == ["abc"]


def test_missing_keys_are_migrated(tmp_path) -> None:
    path = tmp_path / "config.ini"
    path.write_text("[DEFAULT]\nsave_dir = /tmp/spaces\n", encoding="utf-8")

    config = ConfigManager(path).load_config()

    assert config.save_dir == "/tmp/spaces"
    parser = configparser.ConfigParser(interpolation=None)
    parser.read(path, encoding="utf-8")
    assert set(DownloaderConfig.get_ini_keys()) <= set(parser["DEFAULT"])


@pytest.mark.parametrize(
    "contents",
    [
        "[DEFAULT]\nmax_workers = 64\n",
        "[DEFAULT]\nmax_workers = many\n",
        "[DEFAULT]\nguest_token_attempts = 0\n",
        "[DEFAULT]\ntemplate = ../%{title}\n",
    ],
)
def test_invalid_values_raise_configuration_error(tmp_path, contents) -> None:
    path = tmp_path / "config.ini"
    path.write_text(contents, encoding="utf-8")

    with pytest.raises(ConfigurationError):
        ConfigManager(path).load_config()


def test_hand_written_template_is_read_verbatim(tmp_path) -> None:
    path = tmp_path / "config.ini"
    path.write_text(
        "[DEFAULT]\ntemplate = space-%{title}-%{rest_id}\nmax_workers = 2\n",
        encoding="utf-8",
    )

    config = ConfigManager(path).load_config()

    assert config.template == "space-%{title}-%{rest_id}"
    assert config.max_workers == 2
    assert "template = space-%{title}-%{rest_id}" in path.read_text(encoding="utf-8")


def test_saved_template_is_written_without_escaping(tmp_path) -> None:
    path = tmp_path / "config.ini"

    ConfigManager(path).save_new_config({"template": "%{rest_id}-%{title}"})

    assert "template = %{rest_id}-%{title}" in path.read_text(encoding="utf-8")
