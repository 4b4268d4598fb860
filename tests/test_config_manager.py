"""Tests for the TOML configuration layer."""

from pathlib import Path

from depslice import config, config_manager
from depslice.models import ModelProfile


def _write_config(text: str) -> Path:
    config.CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    config.CONFIG_FILE.write_text(text, encoding="utf-8")
    return config.CONFIG_FILE


class TestLoadConfig:
    """Tests for reading the user config file."""

    def test_missing_file_gives_defaults(self):
        assert config_manager.load_full_config() == {}
        assert config_manager.load_alias_config() == {}
        assert config_manager.load_slice_settings() == config_manager.DEFAULT_SLICE_SETTINGS
        assert config_manager.load_model_profiles() == {}

    def test_invalid_toml_is_ignored(self):
        _write_config("this is = = not toml")
        assert config_manager.load_full_config() == {}

    def test_aliases_section(self):
        _write_config('[aliases]\n"#lib/" = "packages/lib/src/"\n"bad" = 3\n')
        assert config_manager.load_alias_config() == {"#lib/": "packages/lib/src/"}

    def test_slice_section(self):
        _write_config('[slice]\ndepth = 3\nmax_bytes = 1000\nmax_file_bytes = -5\nexclude = ["**/*.stories.tsx"]\n')
        settings = config_manager.load_slice_settings()

        assert settings["depth"] == 3
        assert settings["max_bytes"] == 1000
        assert settings["max_file_bytes"] == config.DEFAULT_MAX_FILE_BYTES
        assert settings["exclude"] == ["**/*.stories.tsx"]

    def test_model_profiles(self):
        _write_config(
            "[models.local]\ncontext_window = 32000\nreserve_for_output = 2000\n\n"
            "[models.broken]\nmax_output = 10\n"
        )
        profiles = config_manager.load_model_profiles()

        assert list(profiles) == ["local"]
        assert profiles["local"].available_for_input == 30000


class TestSaveConfig:
    """Tests for writing the user config file."""

    def test_save_model_profile_preserves_other_sections(self):
        _write_config('[aliases]\n"#x/" = "x/"\n')

        assert config_manager.save_model_profile(ModelProfile("tiny", 4000, 500, 1000, 0.001))

        assert config_manager.load_alias_config() == {"#x/": "x/"}
        profile = config_manager.load_model_profiles()["tiny"]
        assert profile.available_for_input == 3000
        assert profile.cost_per_1k_input == 0.001
        assert profile.cost_per_1k_output is None

    def test_save_full_config_creates_directory(self):
        assert not config.BASE_DIR.exists()
        assert config_manager.save_full_config({"slice": {"depth": 2}})
        assert config_manager.load_slice_settings()["depth"] == 2
