"""
Tests for orcamento/core/settings.py and orcamento/core/paths.py.
"""
import json
import os

from orcamento.core import paths
from orcamento.core.settings import DEFAULTS, load_config, validate_settings


class TestLoadConfig:

    def test_defaults(self):
        cfg = load_config()
        assert cfg["company_whatsapp"] == DEFAULTS["company_whatsapp"]
        assert cfg["technician_name"] == "ALEXANDRE FREITAS"
        assert cfg["storage"] == "file"
        assert cfg["logo_timeout"] == 10.0

    def test_config_file_overrides_defaults(self, temp_data_dir):
        with open(os.path.join(temp_data_dir, "orcamento_config.json"), "w") as f:
            json.dump({"technician_name": "BEATRIZ LIMA", "unknown_key": 1}, f)
        cfg = load_config()
        assert cfg["technician_name"] == "BEATRIZ LIMA"
        assert "unknown_key" not in cfg

    def test_env_beats_file(self, temp_data_dir, monkeypatch):
        with open(os.path.join(temp_data_dir, "orcamento_config.json"), "w") as f:
            json.dump({"storage": "file"}, f)
        monkeypatch.setenv("ORCAMENTO_STORAGE", "MEMORY")
        assert load_config()["storage"] == "memory"

    def test_corrupt_file_ignored(self, temp_data_dir):
        with open(os.path.join(temp_data_dir, "orcamento_config.json"), "w") as f:
            f.write("not json")
        assert load_config()["storage"] == "file"

    def test_bad_timeout_falls_back(self, monkeypatch):
        monkeypatch.setenv("ORCAMENTO_LOGO_TIMEOUT", "soon")
        assert load_config()["logo_timeout"] == 10.0

    def test_explicit_data_dir(self, tmp_path):
        with open(tmp_path / "orcamento_config.json", "w") as f:
            json.dump({"warranty_text": "GARANTIA DE 90 DIAS"}, f)
        assert load_config(str(tmp_path))["warranty_text"] == "GARANTIA DE 90 DIAS"


class TestValidateSettings:

    def test_defaults_ok_with_auth_warning(self):
        result = validate_settings()
        assert result["ok"] is True
        assert any("ORCAMENTO_USER" in w for w in result["warnings"])

    def test_no_auth_warning_when_configured(self, monkeypatch):
        monkeypatch.setenv("ORCAMENTO_USER", "u")
        monkeypatch.setenv("ORCAMENTO_PASS", "p")
        assert validate_settings()["warnings"] == []

    def test_unknown_backend(self):
        result = validate_settings(dict(load_config(), storage="sqlite"))
        assert result["ok"] is False
        assert "sqlite" in result["errors"][0]

    def test_memory_warns(self):
        result = validate_settings(dict(load_config(), storage="memory"))
        assert any("Memory storage" in w for w in result["warnings"])

    def test_non_positive_timeout(self):
        result = validate_settings(dict(load_config(), logo_timeout=0))
        assert result["ok"] is False


class TestValidatePaths:

    def test_writable_dirs(self):
        result = paths.validate_paths()
        assert result["ok"] is True
        assert result["resolved"]["DATA_DIR"] == paths.DATA_DIR

    def test_missing_logo_is_warning(self):
        result = paths.validate_paths()
        assert any("Logo not found" in w for w in result["warnings"])

    def test_url_logo_not_checked(self, monkeypatch):
        monkeypatch.setattr(paths, "LOGO_SOURCE", "https://example.com/logo.png")
        assert paths.validate_paths()["warnings"] == []
