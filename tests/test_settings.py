"""Tests for configuration loading and admin settings updates"""

import json
from pathlib import Path

import pytest

from errors import ConfigurationError
from managers.settings_manager import ImagenFlowConfig, SettingsManager


@pytest.fixture
def settings_file(tmp_path):
    return tmp_path / "imagen-flow" / "settings.json"


class TestLoading:
    def test_defaults(self, settings_file):
        config = SettingsManager(settings_file=settings_file).config

        assert config.api_key == ""
        assert config.has_credential is False
        assert config.default_quality == 80
        assert config.preferred_format == "webp"
        assert config.strip_metadata is True

    def test_env_overrides(self, settings_file, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "env-key")
        monkeypatch.setenv("IMAGEN_FLOW_QUALITY", "65")
        monkeypatch.setenv("IMAGEN_FLOW_FORMAT", "jpg")
        monkeypatch.setenv("IMAGEN_FLOW_STRIP_METADATA", "false")
        monkeypatch.setenv("IMAGEN_FLOW_PORT", "9100")

        config = SettingsManager(settings_file=settings_file).config

        assert config.api_key == "env-key"
        assert config.default_quality == 65
        assert config.preferred_format == "jpeg"
        assert config.strip_metadata is False
        assert config.port == 9100

    def test_imagen_flow_key_wins_over_gemini_key(self, settings_file, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "generic")
        monkeypatch.setenv("IMAGEN_FLOW_API_KEY", "specific")

        assert SettingsManager(settings_file=settings_file).config.api_key == "specific"

    def test_precedence(self, settings_file, monkeypatch):
        monkeypatch.setenv("IMAGEN_FLOW_QUALITY", "65")
        monkeypatch.setenv("IMAGEN_FLOW_FORMAT", "jpeg")
        settings_file.parent.mkdir(parents=True)
        settings_file.write_text(json.dumps({"default_quality": 70, "preferred_format": "webp"}))

        config = SettingsManager(settings_file=settings_file, overrides={"default_quality": 90}).config

        assert config.default_quality == 90
        assert config.preferred_format == "webp"

    def test_settings_file_ignores_deploy_keys(self, settings_file):
        settings_file.parent.mkdir(parents=True)
        settings_file.write_text(json.dumps({"port": 1, "default_quality": 50}))

        config = SettingsManager(settings_file=settings_file).config

        assert config.port == 9000
        assert config.default_quality == 50

    def test_corrupt_settings_file_is_ignored(self, settings_file):
        settings_file.parent.mkdir(parents=True)
        settings_file.write_text("{not json")

        assert SettingsManager(settings_file=settings_file).config.default_quality == 80

    @pytest.mark.parametrize(
        "overrides",
        [
            {"default_quality": 0},
            {"default_quality": 101},
            {"default_quality": "high"},
            {"preferred_format": "png"},
            {"not_a_setting": 1},
        ],
    )
    def test_invalid_values(self, settings_file, overrides):
        with pytest.raises(ConfigurationError):
            SettingsManager(settings_file=settings_file, overrides=overrides)


class TestUpdate:
    def test_update_persists_and_swaps_config(self, settings_file):
        manager = SettingsManager(settings_file=settings_file)

        updated = manager.update({"default_quality": 60, "preferred_format": "JPG"})

        assert manager.config is updated
        assert updated.default_quality == 60
        assert updated.preferred_format == "jpeg"
        assert json.loads(settings_file.read_text()) == {"default_quality": 60, "preferred_format": "jpeg"}
        assert SettingsManager(settings_file=settings_file).config.preferred_format == "jpeg"

    def test_update_without_persist(self, settings_file):
        manager = SettingsManager(settings_file=settings_file)

        manager.update({"strip_metadata": False}, persist=False)

        assert manager.config.strip_metadata is False
        assert not settings_file.exists()

    def test_invalid_update_keeps_previous_config(self, settings_file):
        manager = SettingsManager(settings_file=settings_file)
        before = manager.config

        with pytest.raises(ConfigurationError):
            manager.update({"default_quality": 500})

        assert manager.config is before
        assert not settings_file.exists()

    def test_non_editable_key_is_rejected(self, settings_file):
        manager = SettingsManager(settings_file=settings_file)

        with pytest.raises(ConfigurationError, match="Editable settings"):
            manager.update({"media_root": "/tmp/elsewhere"})

    def test_listeners_receive_new_config(self, settings_file):
        manager = SettingsManager(settings_file=settings_file)
        seen = []
        manager.add_listener(seen.append)

        updated = manager.update({"api_key": "  new-key  "}, persist=False)

        assert seen == [updated]
        assert updated.api_key == "new-key"


class TestConfigViews:
    def test_editable_view_masks_key(self):
        config = ImagenFlowConfig(api_key="abcdefgh1234").validate()

        view = config.editable_view()

        assert view["api_key"] == "********1234"
        assert view["api_key_configured"] is True
        assert config.editable_view(mask_key=False)["api_key"] == "abcdefgh1234"

    def test_whitespace_key_is_not_a_credential(self):
        assert ImagenFlowConfig(api_key="   ").validate().has_credential is False

    def test_as_dict_omits_key(self, settings_file, tmp_path):
        manager = SettingsManager(settings_file=settings_file, overrides={"api_key": "secret", "media_root": tmp_path})

        data = manager.as_dict()

        assert "api_key" not in data
        assert data["media_root"] == str(Path(tmp_path))
