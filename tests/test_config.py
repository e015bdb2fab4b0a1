"""
Unit tests for configuration loading.
"""
from paintwall.config import DEFAULTS, PROJECT_ROOT, deep_merge, load_config, resolve_path


class TestDeepMerge:

    def test_nested_values_merge(self):
        merged = deep_merge({"a": {"x": 1, "y": 2}, "b": 3}, {"a": {"y": 5}})
        assert merged == {"a": {"x": 1, "y": 5}, "b": 3}

    def test_defaults_are_not_mutated(self):
        defaults = {"a": {"x": 1}}
        deep_merge(defaults, {"a": {"x": 2}})
        assert defaults == {"a": {"x": 1}}


class TestLoadConfig:

    def test_missing_file_uses_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv("PAINTWALL_PASSWORD", raising=False)
        config = load_config(tmp_path / "config.yaml")
        assert config == DEFAULTS
        assert config is not DEFAULTS

    def test_yaml_overrides_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv("PAINTWALL_PASSWORD", raising=False)
        path = tmp_path / "config.yaml"
        path.write_text("batches:\n  folder_size: 12\nlayout:\n  mode: grid\n")

        config = load_config(path)

        assert config["batches"]["folder_size"] == 12
        assert config["layout"]["mode"] == "grid"
        assert config["layout"]["columns"] == 6

    def test_invalid_yaml_falls_back_to_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv("PAINTWALL_PASSWORD", raising=False)
        path = tmp_path / "config.yaml"
        path.write_text("layout: [unclosed\n")
        assert load_config(path) == DEFAULTS

    def test_non_mapping_is_ignored(self, tmp_path, monkeypatch):
        monkeypatch.delenv("PAINTWALL_PASSWORD", raising=False)
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")
        assert load_config(path) == DEFAULTS

    def test_password_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PAINTWALL_PASSWORD", "from-env")
        path = tmp_path / "config.yaml"
        path.write_text("auth:\n  password: from-file\n")
        assert load_config(path)["auth"]["password"] == "from-env"

    def test_overrides_apply_last(self, tmp_path, monkeypatch):
        monkeypatch.delenv("PAINTWALL_PASSWORD", raising=False)
        config = load_config(tmp_path / "config.yaml", overrides={"upload": {"prefix": "draw"}})
        assert config["upload"]["prefix"] == "draw"
        assert config["upload"]["utc_offset_hours"] == 9


class TestResolvePath:

    def test_relative_paths_use_project_root(self):
        assert resolve_path(DEFAULTS, "uploads") == PROJECT_ROOT / "uploads"

    def test_absolute_paths_kept(self, tmp_path):
        config = deep_merge(DEFAULTS, {"paths": {"uploads": str(tmp_path)}})
        assert resolve_path(config, "uploads") == tmp_path
