"""
Tests for the verification command-line harness.
"""

import json
import os

import pytest

from shapeflow.evaluation.run_verify import load_plugin, main, verify_plugin
from shapeflow.pool_core.catalog import load_side_activities
from shapeflow.pool_core.config_loader import load_config

PLUGINS = os.path.join(os.path.dirname(os.path.dirname(__file__)), "plugins")


class TestLoadPlugin:
    """Test loading plugins from files."""

    def test_context_plugin_directory(self):
        descriptor = load_plugin(os.path.join(PLUGINS, "team_template"))

        assert descriptor.name == "Pulse"
        assert descriptor.is_context

    def test_direct_plugin_by_name(self):
        descriptor = load_plugin(os.path.join(PLUGINS, "baseline_shapes", "shapes.py"), "Star")

        assert descriptor.name == "Star"
        assert descriptor.format == "v1"

    def test_direct_plugin_without_name(self):
        with pytest.raises(AttributeError):
            load_plugin(os.path.join(PLUGINS, "baseline_shapes", "shapes.py"))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_plugin(str(tmp_path))

    def test_factory_plugin(self, tmp_path):
        plugin = tmp_path / "blob.py"
        plugin.write_text(
            "from shapeflow.pool_core.shape import Shape\n"
            "def factory(x, y, size, color, name):\n"
            "    return Shape(x, y, size, color, name)\n"
        )

        descriptor = load_plugin(str(plugin))

        assert descriptor.name == "blob"


class TestVerifyPlugin:
    def test_summary(self, capsys):
        descriptor = load_plugin(os.path.join(PLUGINS, "team_template"))

        summary = verify_plugin([descriptor], config=load_config())

        assert summary.eligible == ["Pulse"]
        assert "VERIFICATION SUMMARY" in capsys.readouterr().out

    def test_summary_lists_side_activities(self, capsys):
        config = load_config()

        summary = verify_plugin([], config=config, side_activities=load_side_activities(config))

        assert summary.activities_eligible == ["SimonSays", "TargetPractice"]
        out = capsys.readouterr().out
        assert "SimonSays (side activity): OK" in out
        assert "Side activities: 2/2 ok" in out

    def test_main_writes_results(self, tmp_path):
        output = tmp_path / "results.json"

        code = main(["--quiet", "--output", str(output)])

        assert code == 0
        data = json.loads(output.read_text())
        assert data["source"] == "registry"
        assert data["total"] == 10
        assert data["ineligible"] == {}
        assert data["activities_total"] == 2
        assert data["activities_ineligible"] == {}

    def test_main_reports_ineligible(self, tmp_path):
        plugin = tmp_path / "broken.py"
        plugin.write_text(
            "def factory(x, y, size, color, name):\n"
            "    raise RuntimeError('nope')\n"
        )

        assert main(["--quiet", "--plugin", str(plugin)]) == 2

    def test_main_bad_plugin(self, tmp_path):
        assert main(["--quiet", "--plugin", str(tmp_path / "none.py")]) == 1
