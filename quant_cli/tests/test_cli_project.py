"""CLI tests for `quant-cloud project`."""

from __future__ import annotations

from typer.testing import CliRunner

from quant_cli.cli import app
from quant_cli.tests.mock_platform import add_platform

runner = CliRunner()


def _record(store, platform_id: str = "acme-cloud"):
    return store.load().platforms[platform_id]


class TestProjectList:
    def test_list(self, logged_in, patched_api):
        result = runner.invoke(app, ["project", "list"])
        assert result.exit_code == 0, result.output
        assert "Site A" in result.output
        assert "site-b" in result.output
        assert "site-a.example.com" in result.output

    def test_empty_org(self, logged_in, patched_api):
        result = runner.invoke(app, ["project", "list", "--org", "globex"])
        assert result.exit_code == 0, result.output
        assert "No projects found" in result.output

    def test_requires_org(self, store, patched_api):
        add_platform(store, "acme-cloud", activeOrganization=None)
        result = runner.invoke(app, ["project", "list"])
        assert result.exit_code == 1
        assert "No organization specified" in result.output

    def test_project_file_org(self, logged_in, patched_api, project_dir):
        (project_dir / ".quant.yml").write_text("org: globex\n")
        result = runner.invoke(app, ["project", "list"])
        assert result.exit_code == 0, result.output
        assert "globex" in result.output


class TestProjectSelect:
    def test_select_by_machine_name(self, logged_in, patched_api):
        result = runner.invoke(app, ["project", "select", "site-b"])
        assert result.exit_code == 0, result.output
        assert _record(logged_in).active_project == "site-b"
        assert "Switched to project Site B" in result.output

    def test_select_by_display_name_stores_machine_name(self, logged_in, patched_api):
        result = runner.invoke(app, ["project", "select", "Site A"])
        assert result.exit_code == 0, result.output
        assert _record(logged_in).active_project == "site-a"

    def test_unknown_lists_available(self, logged_in, patched_api):
        result = runner.invoke(app, ["project", "select", "ghost"])
        assert result.exit_code == 1
        assert "available" in result.output
        assert "site-a" in result.output
        assert "site-b" in result.output
        assert _record(logged_in).active_project is None

    def test_interactive(self, logged_in, patched_api):
        result = runner.invoke(app, ["project", "select"], input="site-b\n")
        assert result.exit_code == 0, result.output
        assert _record(logged_in).active_project == "site-b"

    def test_single_project_selected_without_prompt(self, logged_in, patched_api, mock_platform):
        mock_platform.projects["acme"].pop()
        result = runner.invoke(app, ["project", "select"])
        assert result.exit_code == 0, result.output
        assert "Only one project available" in result.output
        assert _record(logged_in).active_project == "site-a"

    def test_empty_org_is_error(self, logged_in, patched_api):
        result = runner.invoke(app, ["project", "select", "--org", "globex"])
        assert result.exit_code == 1
        assert "No projects found" in result.output

    def test_select_keeps_navigation(self, store, patched_api):
        add_platform(store, "acme-cloud", activeApplication="web", activeEnvironment="production")
        runner.invoke(app, ["project", "select", "site-a"])
        record = _record(store)
        assert (record.active_organization, record.active_application, record.active_environment) == (
            "acme", "web", "production",
        )

    def test_org_select_clears_project(self, store, patched_api):
        add_platform(store, "acme-cloud", activeProject="site-a")
        result = runner.invoke(app, ["org", "select", "globex"])
        assert result.exit_code == 0, result.output
        assert _record(store).active_project is None


class TestProjectCurrent:
    def test_none(self, logged_in):
        result = runner.invoke(app, ["project", "current"])
        assert result.exit_code == 0
        assert "No active project set" in result.output

    def test_shows_details(self, store, patched_api):
        add_platform(store, "acme-cloud", activeProject="site-a")
        result = runner.invoke(app, ["project", "current"])
        assert result.exit_code == 0, result.output
        assert "Site A" in result.output
        assert "site-a.example.com" in result.output
        assert "ap-southeast-2" in result.output

    def test_falls_back_to_stored_name(self, store, patched_api, mock_platform):
        add_platform(store, "acme-cloud", activeProject="site-a")
        mock_platform.valid_tokens.clear()
        result = runner.invoke(app, ["project", "current"])
        assert result.exit_code == 0, result.output
        assert "site-a" in result.output
        assert "Details unavailable" in result.output
