"""Tests for settings loading."""

from pathlib import Path

import pytest

from strato_ledger.config import STATE_DIR_ENV, ConfigError, load_config


class TestLoadConfig:
    """Tests for load_config function."""

    def test_defaults_when_missing(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that a missing settings file falls back to defaults."""
        monkeypatch.delenv(STATE_DIR_ENV, raising=False)
        config = load_config(config_dir=tmp_path)

        assert config.credit_source == "nubank_cc"
        assert config.fetch.timeout == 20.0
        assert config.fetch.max_workers == 4
        assert config.state_dir.name == ".strato_ledger"

    def test_settings_values(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that settings.yaml values are applied."""
        monkeypatch.delenv(STATE_DIR_ENV, raising=False)
        (tmp_path / "settings.yaml").write_text(
            "state_dir: {state}\n"
            "credit_source: inter_cc\n"
            "fetch:\n"
            "  timeout: 5\n"
            "  max_workers: 2\n"
            "sources:\n"
            "  inter_cc: {{label: Inter Cartão, color: '#ff7a00'}}\n"
            "  inter_pix: Inter Pix\n".format(state=tmp_path / "state"),
            encoding="utf-8",
        )

        config = load_config(config_dir=tmp_path)
        registry = config.build_registry()

        assert config.state_dir == tmp_path / "state"
        assert config.fetch.timeout == 5.0
        assert config.fetch.max_workers == 2
        assert registry.label_for("inter_cc") == "Inter Cartão"
        assert registry.label_for("inter_pix") == "Inter Pix"
        assert registry.is_credit("inter_cc")
        assert registry.label_for("nubank_pf_pix") == "Nubank PF"

    def test_env_overrides_state_dir(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the state directory environment override."""
        monkeypatch.setenv(STATE_DIR_ENV, str(tmp_path / "env_state"))
        config = load_config(config_dir=tmp_path)
        assert config.state_dir == tmp_path / "env_state"

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        """Test that broken YAML raises ConfigError."""
        (tmp_path / "settings.yaml").write_text("fetch: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(config_dir=tmp_path)

    def test_invalid_fetch_settings(self, tmp_path: Path) -> None:
        """Test validation of fetch settings."""
        (tmp_path / "settings.yaml").write_text("fetch:\n  max_workers: 0\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="max_workers"):
            load_config(config_dir=tmp_path)

    def test_non_mapping_rejected(self, tmp_path: Path) -> None:
        """Test that a top-level list is rejected."""
        (tmp_path / "settings.yaml").write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(config_dir=tmp_path)
