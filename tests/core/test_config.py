# tests/core/test_config.py
"""Tests for settings schema and Dynaconf-based loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError


class TestGraphmendSettings:
    def test_defaults(self) -> None:
        from graphmend.core.config import DEFAULT_PLACEHOLDER, GraphmendSettings

        settings = GraphmendSettings()
        assert settings.catalog_path is None
        assert settings.strict_catalog is False
        assert settings.detect_cycles is False
        assert settings.placeholder_value == DEFAULT_PLACEHOLDER
        assert settings.limits.max_depth == 32
        assert settings.batch_workers is None

    def test_settings_are_frozen(self) -> None:
        from graphmend.core.config import GraphmendSettings

        settings = GraphmendSettings()
        with pytest.raises(ValidationError):
            settings.detect_cycles = True  # type: ignore[misc]

    def test_unknown_keys_rejected(self) -> None:
        from graphmend.core.config import GraphmendSettings

        with pytest.raises(ValidationError):
            GraphmendSettings(detect_cycle=True)  # type: ignore[call-arg]

    def test_invalid_placeholder_pattern_rejected(self) -> None:
        from graphmend.core.config import GraphmendSettings

        with pytest.raises(ValidationError, match="Invalid placeholder pattern"):
            GraphmendSettings(placeholder_patterns=("(unclosed",))

    @pytest.mark.parametrize("field", ["max_document_bytes", "max_depth", "max_array_length"])
    def test_limits_must_be_positive(self, field: str) -> None:
        from graphmend.core.config import InputLimits

        with pytest.raises(ValidationError):
            InputLimits(**{field: 0})

    def test_empty_placeholder_value_rejected(self) -> None:
        from graphmend.core.config import GraphmendSettings

        with pytest.raises(ValidationError):
            GraphmendSettings(placeholder_value="")


class TestIsPlaceholder:
    @pytest.mark.parametrize(
        "value",
        ["__CONFIGURE_ME__", "<API_KEY>", "__CREDENTIAL__", "{{ PLACEHOLDER }}", "{{TOKEN}}", "YOUR_TOKEN_HERE"],
    )
    def test_recognized(self, value: str) -> None:
        from graphmend.core.config import GraphmendSettings

        assert GraphmendSettings().is_placeholder(value)

    @pytest.mark.parametrize("value", ["https://example.com", "<b>bold</b>", "your_token", 42, None, ["__X__"]])
    def test_real_values(self, value: object) -> None:
        from graphmend.core.config import GraphmendSettings

        assert not GraphmendSettings().is_placeholder(value)

    def test_custom_placeholder_value(self) -> None:
        from graphmend.core.config import GraphmendSettings

        settings = GraphmendSettings(placeholder_value="TODO", placeholder_patterns=())
        assert settings.is_placeholder("TODO")
        assert not settings.is_placeholder("<API_KEY>")


class TestLoadSettings:
    """Test Dynaconf-based settings loading."""

    def test_load_from_yaml_file(self, tmp_path: Path) -> None:
        from graphmend.core.config import load_settings

        config_file = tmp_path / "settings.yaml"
        config_file.write_text("""
strict_catalog: true
placeholder_value: "<FILL_ME>"
limits:
  max_depth: 40
batch_workers: 2
""")
        settings = load_settings(config_file)
        assert settings.strict_catalog is True
        assert settings.placeholder_value == "<FILL_ME>"
        assert settings.limits.max_depth == 40
        assert settings.limits.max_array_length == 1000
        assert settings.batch_workers == 2

    def test_load_with_env_override(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        from graphmend.core.config import load_settings

        config_file = tmp_path / "settings.yaml"
        config_file.write_text("""
detect_cycles: false
""")
        # Environment variable should override YAML
        monkeypatch.setenv("GRAPHMEND_DETECT_CYCLES", "true")

        settings = load_settings(config_file)
        assert settings.detect_cycles is True

    def test_relative_catalog_path_resolves_against_settings_file(self, tmp_path: Path) -> None:
        from graphmend.core.config import load_settings

        config_dir = tmp_path / "conf"
        config_dir.mkdir()
        config_file = config_dir / "settings.yaml"
        config_file.write_text("catalog_path: catalog.yaml\n")

        settings = load_settings(config_file)
        assert settings.catalog_path == (config_dir / "catalog.yaml").resolve()

    def test_absolute_catalog_path_kept(self, tmp_path: Path) -> None:
        from graphmend.core.config import load_settings

        target = tmp_path / "elsewhere" / "catalog.yaml"
        config_file = tmp_path / "settings.yaml"
        config_file.write_text(f"catalog_path: {target}\n")

        assert load_settings(config_file).catalog_path == target

    def test_load_validates_schema(self, tmp_path: Path) -> None:
        from graphmend.core.config import load_settings

        config_file = tmp_path / "settings.yaml"
        config_file.write_text("""
limits:
  max_depth: -1
""")
        with pytest.raises(ValidationError):
            load_settings(config_file)

    def test_load_missing_file_raises_file_not_found(self, tmp_path: Path) -> None:
        from graphmend.core.config import load_settings

        missing_file = tmp_path / "nonexistent.yaml"
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            load_settings(missing_file)
