"""Tests for DataStoreConfig, environment substitution and YAML loading."""

from dataclasses import FrozenInstanceError

import pytest

from datastore.config import (
    DataStoreConfig,
    expand_datastore_block,
    expand_env_value,
    expand_params,
    load_datastore_config,
)
from datastore.exceptions import ConfigValidationError


class TestDataStoreConfig:
    def test_params_are_read_only(self):
        source = {"base_url": "https://example.com"}
        config = DataStoreConfig(type="HTTP", params=source)
        source["base_url"] = "changed"

        assert config.params["base_url"] == "https://example.com"
        with pytest.raises(TypeError):
            config.params["base_url"] = "other"  # type: ignore[index]
        with pytest.raises(FrozenInstanceError):
            config.type = "S3"  # type: ignore[misc]

    def test_backend_type_normalized(self):
        assert DataStoreConfig(type=" HTTP ").backend_type == "http"

    def test_empty_type_rejected(self):
        with pytest.raises(ConfigValidationError):
            DataStoreConfig(type="  ")

    def test_from_dict_coerces_values(self):
        config = DataStoreConfig.from_dict({
            "type": "S3",
            "params": {"destination_bucket_path": "bucket", "pool_maxsize": 20, "skip": None},
        })
        assert config.params == {"destination_bucket_path": "bucket", "pool_maxsize": "20"}

    @pytest.mark.parametrize(
        "data",
        [None, {}, {"params": {}}, {"type": "HTTP", "params": ["a"]}],
    )
    def test_from_dict_rejects_malformed(self, data):
        with pytest.raises(ConfigValidationError):
            DataStoreConfig.from_dict(data)

    def test_require(self):
        config = DataStoreConfig(type="HTTP", params={"base_url": "https://x", "blank": " "})
        assert config.require("base_url") == "https://x"
        with pytest.raises(ConfigValidationError, match="no blank"):
            config.require("blank")

    def test_params_with_prefix(self):
        config = DataStoreConfig(
            type="HTTP",
            params={"header_A": "1", "header_X-B": "2", "base_url": "https://x"},
        )
        assert config.params_with_prefix("header_") == {"A": "1", "X-B": "2"}

    def test_to_dict_round_trip(self):
        config = DataStoreConfig(type="HTTP", params={"base_url": "https://x"})
        assert DataStoreConfig.from_dict(config.to_dict()) == config


class TestEnvSubstitution:
    def test_expands_params_values(self, monkeypatch):
        monkeypatch.setenv("API_TOKEN", "secret")
        result = expand_datastore_block({
            "type": "HTTP",
            "params": {"header_Authorization": "Bearer ${API_TOKEN}", "pool_maxsize": 20},
        })
        assert result["params"]["header_Authorization"] == "Bearer secret"
        assert result["params"]["pool_maxsize"] == 20

    def test_type_is_taken_literally(self, monkeypatch):
        monkeypatch.setenv("BACKEND", "S3")
        result = expand_datastore_block({"type": "${BACKEND}", "params": {}})
        assert result["type"] == "${BACKEND}"

    def test_default_value(self, monkeypatch):
        monkeypatch.delenv("DATASTORE_TIMEOUT", raising=False)
        assert expand_env_value("${DATASTORE_TIMEOUT:45s}") == "45s"

    def test_escaped_reference_is_literal(self, monkeypatch):
        monkeypatch.setenv("API_TOKEN", "secret")
        assert expand_env_value("$${API_TOKEN}-${API_TOKEN}") == "${API_TOKEN}-secret"

    def test_missing_variable_names_param(self, monkeypatch):
        monkeypatch.delenv("NOT_SET_ANYWHERE", raising=False)
        with pytest.raises(ConfigValidationError, match="NOT_SET_ANYWHERE") as exc_info:
            expand_params({"header_Authorization": "Bearer ${NOT_SET_ANYWHERE}"})
        assert exc_info.value.key == "header_Authorization"

    def test_malformed_block_passes_through(self):
        assert expand_datastore_block(["not", "a", "block"]) == ["not", "a", "block"]
        assert expand_datastore_block({"type": "HTTP", "params": ["a"]}) == {
            "type": "HTTP",
            "params": ["a"],
        }


class TestLoader:
    def test_loads_datastore_section(self, tmp_path, monkeypatch):
        monkeypatch.setenv("API_TOKEN", "token123")
        path = tmp_path / "config.yaml"
        path.write_text(
            "datastore:\n"
            "  type: HTTP\n"
            "  params:\n"
            "    base_url: https://example.com/data/\n"
            "    timeout: 60s\n"
            "    header_Authorization: \"Bearer ${API_TOKEN}\"\n",
            encoding="utf-8",
        )
        config = load_datastore_config(path)
        assert config.type == "HTTP"
        assert config.params["timeout"] == "60s"
        assert config.params["header_Authorization"] == "Bearer token123"

    def test_custom_section_and_no_substitution(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "export:\n  type: Filesystem\n  params:\n    destination_path: ${HOME}/out\n",
            encoding="utf-8",
        )
        config = load_datastore_config(path, section="export", enable_env_substitution=False)
        assert config.params["destination_path"] == "${HOME}/out"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_datastore_config(tmp_path / "absent.yaml")

    def test_missing_section(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("other: {}\n", encoding="utf-8")
        with pytest.raises(ConfigValidationError) as exc_info:
            load_datastore_config(path)
        assert exc_info.value.details["config_path"] == str(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("datastore: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigValidationError, match="Invalid YAML"):
            load_datastore_config(path)

    def test_non_mapping_document(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigValidationError, match="dictionary"):
            load_datastore_config(path)

    def test_missing_type_reports_path(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("datastore:\n  params: {}\n", encoding="utf-8")
        with pytest.raises(ConfigValidationError) as exc_info:
            load_datastore_config(path)
        assert exc_info.value.key == "type"

    def test_unset_variable_reports_param_and_path(self, tmp_path, monkeypatch):
        monkeypatch.delenv("NOT_SET_ANYWHERE", raising=False)
        path = tmp_path / "config.yaml"
        path.write_text(
            "datastore:\n"
            "  type: HTTP\n"
            "  params:\n"
            "    base_url: https://example.com/\n"
            "    header_X-API-Key: ${NOT_SET_ANYWHERE}\n",
            encoding="utf-8",
        )
        with pytest.raises(ConfigValidationError) as exc_info:
            load_datastore_config(path)
        assert exc_info.value.key == "header_X-API-Key"
        assert exc_info.value.details["config_path"] == str(path)
