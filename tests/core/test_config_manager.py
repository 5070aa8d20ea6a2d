from hierarchy_editor.config import ConfigManager, get_user_config_dir


def test_user_dir_follows_environment_override(isolated_config):
    assert get_user_config_dir() == isolated_config
    assert ConfigManager().get_user_dir() == isolated_config


def test_config_manager_is_a_singleton():
    assert ConfigManager() is ConfigManager()


def test_packaged_logging_config_is_loaded():
    logging_config = ConfigManager().get_logging_config()
    assert logging_config.get("version") == 1
    assert "handlers" in logging_config


def test_user_overrides_are_merged(isolated_config):
    isolated_config.mkdir(parents=True)
    (isolated_config / "editor_defaults.yml").write_text("theme: dark\nindent_size: 4\n", encoding="utf-8")
    ConfigManager.reset()

    defaults = ConfigManager().get_editor_defaults()

    assert defaults["theme"] == "dark"
    assert defaults["indent_size"] == 4
    assert defaults["format"] == "json"


def test_invalid_user_override_is_ignored(isolated_config):
    isolated_config.mkdir(parents=True)
    (isolated_config / "editor_defaults.yml").write_text("theme: [unclosed\n", encoding="utf-8")
    ConfigManager.reset()

    assert ConfigManager().get_editor_defaults()["theme"] == "light"
