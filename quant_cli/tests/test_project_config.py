"""Tests for .quant.yml discovery and parsing."""

from __future__ import annotations

from quant_cli.core.models import ProjectConfig
from quant_cli.core.project_config import find_config_file, get_project_config, load_config


class TestFindConfigFile:
    def test_finds_file_in_start_dir(self, project_dir):
        path = project_dir / ".quant.yml"
        path.write_text("org: acme\n")
        assert find_config_file(project_dir) == path.resolve()

    def test_climbs_to_repository_root(self, project_dir):
        (project_dir / ".quant.yml").write_text("org: acme\n")
        nested = project_dir / "src" / "deep"
        nested.mkdir(parents=True)
        assert find_config_file(nested) == (project_dir / ".quant.yml").resolve()

    def test_never_crosses_repository_root(self, tmp_path):
        (tmp_path / ".quant.yml").write_text("org: outer\n")
        repo = tmp_path / "outer" / "repo"
        (repo / ".git").mkdir(parents=True)
        nested = repo / "pkg"
        nested.mkdir()
        assert find_config_file(nested) is None

    def test_file_at_root_wins_over_marker(self, project_dir):
        (project_dir / ".quant.yml").write_text("org: acme\n")
        assert find_config_file(project_dir) is not None

    def test_defaults_to_cwd(self, project_dir):
        (project_dir / ".quant.yml").write_text("org: acme\n")
        assert find_config_file() == (project_dir / ".quant.yml").resolve()

    def test_none_when_absent(self, project_dir):
        assert find_config_file(project_dir) is None

    def test_directory_named_like_config_is_ignored(self, project_dir):
        (project_dir / ".quant.yml").mkdir()
        assert find_config_file(project_dir) is None


class TestLoadConfig:
    def test_recognized_keys(self, tmp_path):
        path = tmp_path / ".quant.yml"
        path.write_text("platform: quantgov\norg: acme\napp: web\nenv: production\n")
        assert load_config(path) == ProjectConfig(platform="quantgov", org="acme", app="web", env="production")

    def test_drops_non_string_and_unknown_keys(self, tmp_path):
        path = tmp_path / ".quant.yml"
        path.write_text("org: 123\napp: [a, b]\nenv: staging\nregion: us-east-1\n")
        assert load_config(path).as_dict() == {"env": "staging"}

    def test_drops_empty_strings(self, tmp_path):
        path = tmp_path / ".quant.yml"
        path.write_text("org: ''\napp: web\n")
        assert load_config(path).as_dict() == {"app": "web"}

    def test_empty_file(self, tmp_path):
        path = tmp_path / ".quant.yml"
        path.write_text("")
        assert load_config(path).is_empty()

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / ".quant.yml"
        path.write_text("org: [unclosed\n  : :\n")
        assert load_config(path).is_empty()

    def test_scalar_root(self, tmp_path):
        path = tmp_path / ".quant.yml"
        path.write_text("just a string\n")
        assert load_config(path).is_empty()

    def test_missing_file(self, tmp_path):
        assert load_config(tmp_path / "nope.yml").is_empty()


class TestGetProjectConfig:
    def test_loads_nearest(self, project_dir):
        (project_dir / ".quant.yml").write_text("org: acme\n")
        sub = project_dir / "sub"
        sub.mkdir()
        (sub / ".quant.yml").write_text("org: inner\n")
        assert get_project_config(sub).org == "inner"

    def test_empty_without_file(self, project_dir):
        assert get_project_config(project_dir).is_empty()
