"""
Tests for configuration loading, saving and validation.
"""

import pytest
import yaml

from spotlightdl import config as config_module
from spotlightdl.config import DEFAULT_CONFIG, load_config, save_config, validate_config
from spotlightdl.exceptions import ConfigFileError, ConfigValidationError

pytestmark = pytest.mark.unit


@pytest.fixture
def base_config(tmp_path):
    """Defaults with OUTPUT_DIR pointing at an existing temporary directory."""
    config = dict(DEFAULT_CONFIG)
    config["OUTPUT_DIR"] = str(tmp_path)
    return config


class TestLoadConfig:
    def test_defaults_when_no_file(self):
        assert load_config() == DEFAULT_CONFIG

    def test_returns_a_copy(self):
        config = load_config()
        config["LOCALE"] = "fr-FR"
        assert DEFAULT_CONFIG["LOCALE"] is None

    def test_merges_file_over_defaults(self, tmp_path):
        path = tmp_path / "spotlightdl.yaml"
        path.write_text("locale: fr-FR\nAPI_VERSION: 3\ncache_size: 20\n", encoding="utf-8")

        config = load_config(str(path))

        assert config["LOCALE"] == "fr-FR"
        assert config["API_VERSION"] == 3
        assert config["CACHE_SIZE"] == 20
        assert config["OUTPUT_NAME"] == DEFAULT_CONFIG["OUTPUT_NAME"]

    def test_uses_default_location(self):
        with open(config_module.CONFIG_FILE, "w", encoding="utf-8") as f:
            f.write("METADATA: true\n")
        assert load_config()["METADATA"] is True

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(str(path)) == DEFAULT_CONFIG

    def test_explicit_missing_file(self, tmp_path):
        with pytest.raises(ConfigFileError, match="not found"):
            load_config(str(tmp_path / "missing.yaml"))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("locale: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigFileError):
            load_config(str(path))

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigFileError, match="mapping"):
            load_config(str(path))


def test_save_then_load(tmp_path, base_config):
    path = str(tmp_path / "nested" / "spotlightdl.yaml")
    base_config["LOCALE"] = "it-IT"

    assert save_config(base_config, path) == path
    assert load_config(path) == base_config
    with open(path, encoding="utf-8") as f:
        assert yaml.safe_load(f)["LOCALE"] == "it-IT"


class TestValidateConfig:
    def test_defaults_are_valid(self, base_config):
        result = validate_config(base_config)
        assert result["API_VERSION"] == 4
        assert result["DOWNLOAD_MANY"] is False
        assert result is not base_config

    def test_partial_config_is_completed(self, tmp_path):
        result = validate_config({"OUTPUT_DIR": str(tmp_path)})
        assert result["API_TRIES"] == DEFAULT_CONFIG["API_TRIES"]

    def test_numeric_strings_are_converted(self, base_config):
        base_config.update({"API_VERSION": "3", "API_TRIES": "5", "CACHE_SIZE": "10"})
        result = validate_config(base_config)
        assert result["API_VERSION"] == 3
        assert result["API_TRIES"] == 5
        assert result["CACHE_SIZE"] == 10

    @pytest.mark.parametrize(
        "key,value",
        [
            ("API_VERSION", 5),
            ("API_VERSION", "four"),
            ("API_TRIES", 0),
            ("API_TRIES", True),
            ("SCREEN_WIDTH", 0),
            ("SCREEN_HEIGHT", -1080),
            ("CACHE_SIZE", -1),
            ("DOWNLOAD_AMOUNT", -3),
            ("RETRY_DELAY_SECONDS", -1),
            ("RETRY_DELAY_SECONDS", "10"),
            ("OUTPUT_NAME", ""),
            ("OUTPUT_NAME", "bad/name"),
            ("OUTPUT_NAME", "what?"),
            ("ORIENTATION", "square"),
        ],
    )
    def test_rejects_invalid_values(self, base_config, key, value):
        base_config[key] = value
        with pytest.raises(ConfigValidationError) as exc_info:
            validate_config(base_config)
        assert exc_info.value.key == key

    def test_missing_output_dir(self, base_config, tmp_path):
        base_config["OUTPUT_DIR"] = str(tmp_path / "missing")
        with pytest.raises(ConfigValidationError, match="does not exist") as exc_info:
            validate_config(base_config)
        assert exc_info.value.key == "OUTPUT_DIR"

    def test_orientation_is_normalized(self, base_config):
        base_config["ORIENTATION"] = "Portrait"
        assert validate_config(base_config)["ORIENTATION"] == "portrait"

    def test_unusual_locale_only_warns(self, base_config, mocker):
        mock_logger = mocker.patch("spotlightdl.config.logger")
        base_config["LOCALE"] = "sr-Latn-RS"
        assert validate_config(base_config)["LOCALE"] == "sr-Latn-RS"
        mock_logger.warning.assert_called_once()

    @pytest.mark.parametrize(
        "overrides",
        [{"ALL_LOCALES": True}, {"DOWNLOAD_AMOUNT": 5}, {"DOWNLOAD_MANY": True}],
    )
    def test_download_many_implied(self, base_config, overrides):
        base_config.update(overrides)
        assert validate_config(base_config)["DOWNLOAD_MANY"] is True

    @pytest.mark.parametrize(
        "amount,cache_size,expected",
        [(0, 10, 10), (20, 10, 10), (5, 10, 5), (5, 0, 5)],
    )
    def test_amount_capped_by_cache_size(self, base_config, amount, cache_size, expected):
        base_config.update(
            {"DOWNLOAD_MANY": True, "DOWNLOAD_AMOUNT": amount, "CACHE_SIZE": cache_size}
        )
        assert validate_config(base_config)["DOWNLOAD_AMOUNT"] == expected

    def test_cache_size_does_not_cap_single_download(self, base_config):
        base_config["CACHE_SIZE"] = 10
        result = validate_config(base_config)
        assert result["DOWNLOAD_AMOUNT"] == 0
        assert result["DOWNLOAD_MANY"] is False

    def test_metadata_with_all_locales_needs_opt_in(self, base_config):
        base_config.update({"METADATA": True, "ALL_LOCALES": True})
        with pytest.raises(ConfigValidationError) as exc_info:
            validate_config(base_config)
        assert exc_info.value.key == "METADATA"

        base_config["INCONSISTENT_METADATA"] = True
        assert validate_config(base_config)["METADATA"] is True
