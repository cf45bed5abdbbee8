"""Tests for the good-render command line."""

import orjson
import pytest
from typer.testing import CliRunner

from good_render.cli.main import app


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def project(tmp_path, monkeypatch):
    """A project directory with a good-render.yaml and a couple of templates."""
    (tmp_path / "good-render.yaml").write_text(
        "templates_dir: views\ncache_dir: build/artifacts\ncache_map_dir: build\n"
    )
    views = tmp_path / "views"
    (views / "partials").mkdir(parents=True)
    (views / "hello.hbs").write_text("Hello {{ name }}!")
    (views / "page.hbs").write_text("{% include 'partials/nav' %}|{{ title }}")
    (views / "partials" / "nav.hbs").write_text("nav")
    monkeypatch.chdir(tmp_path)
    return tmp_path


class TestRenderCommand:
    def test_render(self, runner, project):
        result = runner.invoke(app, ["render", "hello", "--data", '{"name": "cli"}'])
        assert result.exit_code == 0, result.output
        assert result.stdout == "Hello cli!"
        assert (project / "build" / "artifacts" / "hello.json").is_file()

    def test_render_with_partials(self, runner, project):
        result = runner.invoke(
            app, ["render", "page", "-p", "partials", "-d", '{"title": "Home"}']
        )
        assert result.exit_code == 0, result.output
        assert result.stdout == "nav|Home"

    def test_render_no_cache(self, runner, project):
        result = runner.invoke(app, ["render", "hello", "--no-cache"])
        assert result.exit_code == 0, result.output
        assert not (project / "build" / "artifacts" / "hello.json").exists()

    def test_render_missing_template(self, runner, project):
        result = runner.invoke(app, ["render", "missing"])
        assert result.exit_code == 1

    def test_render_bad_json(self, runner, project):
        result = runner.invoke(app, ["render", "hello", "--data", "[1"])
        assert result.exit_code == 2

    def test_cli_overrides_config_file(self, runner, project, tmp_path):
        other = tmp_path / "other"
        other.mkdir()
        (other / "hello.tpl").write_text("Other {{ name }}")
        result = runner.invoke(
            app,
            ["--templates-dir", str(other), "--extension", "tpl", "render", "hello"],
        )
        assert result.exit_code == 0, result.output
        assert result.stdout == "Other "


class TestCacheCommands:
    def test_check_writes_map(self, runner, project):
        result = runner.invoke(app, ["check"])
        assert result.exit_code == 0, result.output
        assert "up to date" in result.stdout
        mapping = orjson.loads((project / "build" / "map.json").read_bytes())
        assert set(mapping) == {"hello", "page", "partials/nav"}

    def test_check_drops_stale_cache(self, runner, project):
        import os

        runner.invoke(app, ["render", "hello"])
        ledger = project / "build" / "map.json"
        mapping = orjson.loads(ledger.read_bytes())
        mapping["hello"] -= 100
        ledger.write_bytes(orjson.dumps(mapping))

        result = runner.invoke(app, ["check"])
        assert result.exit_code == 0, result.output
        assert "Cache dropped" in result.stdout
        assert not (project / "build" / "artifacts").exists()
        assert os.path.exists(ledger)

    def test_check_rejects_ledger_inside_cache_before_creating_it(self, runner, project):
        result = runner.invoke(
            app, ["--cache-map-dir", "build/artifacts/meta", "check"]
        )
        assert result.exit_code == 1
        assert not (project / "build").exists()

    def test_clear_cache(self, runner, project):
        runner.invoke(app, ["render", "hello"])
        result = runner.invoke(app, ["clear-cache"])
        assert result.exit_code == 0
        assert "Cache cleared" in result.stdout
        assert not (project / "build" / "artifacts").exists()

    def test_list(self, runner, project):
        runner.invoke(app, ["render", "hello"])
        result = runner.invoke(app, ["list"])
        assert result.exit_code == 0, result.output
        assert "hello" in result.stdout
        assert "partials/nav" in result.stdout

    def test_export(self, runner, project):
        result = runner.invoke(app, ["export", "-p", "partials"])
        assert result.exit_code == 0, result.output
        assert 'id="tpl-hello"' in result.stdout
        assert "__template_server_partials" in result.stdout

    def test_invalid_layout(self, runner, project):
        result = runner.invoke(app, ["--cache-dir", "build", "check"])
        assert result.exit_code == 2
