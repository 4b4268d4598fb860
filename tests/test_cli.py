"""Integration tests for CLI commands."""

import json
from pathlib import Path

from typer.testing import CliRunner

from depslice import config_manager
from depslice.cli import app
from depslice.models import FileRecord, RepoIndex
from depslice.storage import OutputStore


runner = CliRunner()


class TestGraphCommand:
    """Tests for 'ds graph'."""

    def test_full_graph(self, sample_project_path: Path, temp_dir: Path):
        """Whole-repository graph writes deps.json and prints stats."""
        result = runner.invoke(app, ["graph", "--root", str(sample_project_path), "--output", str(temp_dir)])

        assert result.exit_code == 0
        assert "Dependency Graph Stats:" in result.stdout
        assert "Nodes:      10" in result.stdout
        assert "Circular:   1" in result.stdout
        data = json.loads((temp_dir / "graphs" / "deps.json").read_text())
        assert len(data["nodes"]) == 10

    def test_seeded_graph_all_formats(self, sample_project_path: Path, temp_dir: Path):
        result = runner.invoke(app, [
            "graph", "--root", str(sample_project_path), "--output", str(temp_dir),
            "--seed", "src/app/page.tsx", "--depth", "1", "--format", "all",
        ])

        assert result.exit_code == 0
        assert "Nodes:      4" in result.stdout
        assert "Seeds:      1 (depth <= 1)" in result.stdout
        assert (temp_dir / "graphs" / "deps.json").exists()
        assert (temp_dir / "graphs" / "deps.mmd").read_text().startswith("graph TD")
        assert (temp_dir / "graphs" / "deps.dot").read_text().startswith("digraph")

    def test_missing_seed_fails(self, sample_project_path: Path, temp_dir: Path):
        """A seed set with no existing files exits non-zero."""
        result = runner.invoke(app, [
            "graph", "--root", str(sample_project_path), "--output", str(temp_dir), "--seed", "nope.ts",
        ])

        assert result.exit_code == 1
        assert "No seed files resolved" in result.stdout
        assert not (temp_dir / "graphs").exists()

    def test_default_output_dir(self, copied_project: Path):
        """Without --output, results go to <root>/.depslice."""
        result = runner.invoke(app, ["graph", "--root", str(copied_project)])

        assert result.exit_code == 0
        assert (copied_project / ".depslice" / "graphs" / "deps.json").exists()

    def test_unknown_format(self, sample_project_path: Path):
        result = runner.invoke(app, ["graph", "--root", str(sample_project_path), "--format", "svg"])
        assert result.exit_code != 0


class TestSliceCommand:
    """Tests for 'ds slice'."""

    def test_feature_slice(self, sample_project_path: Path, temp_dir: Path):
        """Feature slice writes JSON and a Markdown context pack."""
        result = runner.invoke(app, [
            "slice", "--root", str(sample_project_path), "--output", str(temp_dir),
            "--seed", "src/app/page.tsx", "--name", "dashboard",
        ])

        assert result.exit_code == 0
        assert "CONTEXT SLICE: dashboard" in result.stdout
        assert "Files:      8" in result.stdout
        data = json.loads((temp_dir / "slices" / "dashboard.json").read_text())
        assert data["files"][0]["reason"] == "seed"
        assert "# Context Pack: dashboard" in (temp_dir / "slices" / "dashboard.md").read_text()

    def test_route_slice(self, sample_project_path: Path, temp_dir: Path):
        result = runner.invoke(app, [
            "slice", "--root", str(sample_project_path), "--output", str(temp_dir), "--format", "json",
            "--route", "/", "--seed", "src/app/page.tsx", "--layout", "src/app/layout.tsx",
        ])

        assert result.exit_code == 0
        data = json.loads((temp_dir / "slices" / "root.json").read_text())
        assert data["type"] == "route"
        assert {"layout", "seed"} <= {f["reason"] for f in data["files"]}
        assert not (temp_dir / "slices" / "root.md").exists()

    def test_model_budget(self, sample_project_path: Path, temp_dir: Path):
        result = runner.invoke(app, [
            "slice", "--root", str(sample_project_path), "--output", str(temp_dir),
            "--seed", "src/app/page.tsx", "--model", "gpt-4o",
        ])

        assert result.exit_code == 0
        assert "Token Budget (gpt-4o)" in result.stdout
        data = json.loads((temp_dir / "slices" / "feature.json").read_text())
        assert data["budget"]["dimension"] == "tokens"
        assert data["tokenBudget"]["available_for_input"] == 124000

    def test_small_byte_budget_reports_exclusions(self, sample_project_path: Path, temp_dir: Path):
        result = runner.invoke(app, [
            "slice", "--root", str(sample_project_path), "--output", str(temp_dir),
            "--seed", "src/app/page.tsx", "--max-bytes", "300",
        ])

        assert result.exit_code == 0
        assert "Excluded:" in result.stdout
        assert "budget" in result.stdout

    def test_conflicting_budgets_rejected(self, sample_project_path: Path, temp_dir: Path):
        result = runner.invoke(app, [
            "slice", "--root", str(sample_project_path), "--output", str(temp_dir),
            "--seed", "src/app/page.tsx", "--max-tokens", "100", "--max-bytes", "100",
        ])

        assert result.exit_code != 0
        assert not (temp_dir / "slices").exists()

    def test_no_seeds_rejected(self, sample_project_path: Path):
        result = runner.invoke(app, ["slice", "--root", str(sample_project_path)])
        assert result.exit_code != 0

    def test_missing_seed_fails(self, sample_project_path: Path, temp_dir: Path):
        result = runner.invoke(app, [
            "slice", "--root", str(sample_project_path), "--output", str(temp_dir), "--seed", "gone.tsx",
        ])

        assert result.exit_code == 1
        assert "No seed files resolved" in result.stdout

    def test_route_finds_its_own_files(self, sample_project_path: Path, temp_dir: Path):
        """--route alone picks up the page and its layouts from the index."""
        result = runner.invoke(app, [
            "slice", "--root", str(sample_project_path), "--output", str(temp_dir), "--format", "json", "--route", "/",
        ])

        assert result.exit_code == 0
        data = json.loads((temp_dir / "slices" / "root.json").read_text())
        reasons = {f["relativePath"]: f["reason"] for f in data["files"]}
        assert reasons["src/app/layout.tsx"] == "layout"
        assert reasons["src/app/page.tsx"] == "seed"

    def test_unknown_route_fails(self, sample_project_path: Path, temp_dir: Path):
        result = runner.invoke(app, [
            "slice", "--root", str(sample_project_path), "--output", str(temp_dir), "--route", "/settings",
        ])

        assert result.exit_code == 1
        assert "No files found for route: /settings" in result.stdout
        assert not (temp_dir / "slices").exists()


class TestScanCommand:
    """Tests for 'ds scan' and the saved index."""

    def test_scan_writes_index(self, sample_project_path: Path, temp_dir: Path):
        result = runner.invoke(app, ["scan", "--root", str(sample_project_path), "--output", str(temp_dir)])

        assert result.exit_code == 0
        assert "REPOSITORY INDEX" in result.stdout
        assert "Files:      10" in result.stdout
        assert "Routes:     1" in result.stdout
        data = json.loads((temp_dir / "index.json").read_text())
        assert data["summary"]["totalFiles"] == 10

    def test_graph_uses_saved_index(self, sample_project_path: Path, temp_dir: Path):
        """graph reads index.json until --refresh asks for a rescan."""
        page = FileRecord("src/app/page.tsx", "page", route_path="/")
        OutputStore(sample_project_path, temp_dir).save_index(
            RepoIndex(repo_root=str(sample_project_path), files=[page])
        )
        args = ["graph", "--root", str(sample_project_path), "--output", str(temp_dir)]

        cached = runner.invoke(app, args)
        refreshed = runner.invoke(app, args + ["--refresh"])

        assert "Nodes:      1" in cached.stdout
        assert "Nodes:      10" in refreshed.stdout

    def test_scan_refresh_replaces_saved_index(self, sample_project_path: Path, temp_dir: Path):
        store = OutputStore(sample_project_path, temp_dir)
        store.save_index(RepoIndex(repo_root=str(sample_project_path), files=[]))
        args = ["scan", "--root", str(sample_project_path), "--output", str(temp_dir)]

        assert "Files:      0" in runner.invoke(app, args).stdout
        assert "Files:      10" in runner.invoke(app, args + ["--refresh"]).stdout
        assert len(store.load_index().files) == 10


class TestShowCommand:
    """Tests for 'ds show'."""

    def test_show_saved_slice(self, sample_project_path: Path, temp_dir: Path):
        runner.invoke(app, [
            "slice", "--root", str(sample_project_path), "--output", str(temp_dir),
            "--seed", "src/app/page.tsx", "--name", "dashboard", "--format", "json",
        ])

        result = runner.invoke(app, ["show", "dashboard", "--root", str(sample_project_path), "--output", str(temp_dir)])

        assert result.exit_code == 0
        assert "CONTEXT SLICE: dashboard" in result.stdout
        assert "Files:      8" in result.stdout

    def test_list_saved_outputs(self, sample_project_path: Path, temp_dir: Path):
        runner.invoke(app, ["graph", "--root", str(sample_project_path), "--output", str(temp_dir)])
        runner.invoke(app, [
            "slice", "--root", str(sample_project_path), "--output", str(temp_dir), "--route", "/",
        ])

        result = runner.invoke(app, ["show", "--root", str(sample_project_path), "--output", str(temp_dir)])

        assert result.exit_code == 0
        assert "Nodes:      10" in result.stdout
        assert "Saved slices:" in result.stdout
        assert "root" in result.stdout

    def test_unknown_slice_fails(self, sample_project_path: Path, temp_dir: Path):
        result = runner.invoke(app, ["show", "nope", "--root", str(sample_project_path), "--output", str(temp_dir)])

        assert result.exit_code == 1
        assert "No saved slice named 'nope'" in result.stdout

    def test_nothing_saved(self, sample_project_path: Path, temp_dir: Path):
        result = runner.invoke(app, ["show", "--root", str(sample_project_path), "--output", str(temp_dir)])

        assert result.exit_code == 0
        assert "No saved outputs" in result.stdout


class TestModelsCommand:
    """Tests for 'ds models'."""

    def test_lists_builtin_profiles(self):
        result = runner.invoke(app, ["models"])

        assert result.exit_code == 0
        assert "gpt-4o" in result.stdout
        assert "124000" in result.stdout

    def test_add_model_then_list(self):
        """A profile saved with add-model shows up in models and budgets slices."""
        result = runner.invoke(app, ["add-model", "local-llm", "--context-window", "8000", "--reserve", "1000"])

        assert result.exit_code == 0
        assert "7000 tokens for input" in result.stdout
        assert config_manager.load_model_profiles()["local-llm"].available_for_input == 7000

        listed = runner.invoke(app, ["models"])
        assert "local-llm" in listed.stdout

    def test_add_model_with_costs(self):
        result = runner.invoke(app, [
            "add-model", "priced", "-c", "16000", "--max-output", "2000", "--cost-in", "0.001", "--cost-out", "0.002",
        ])

        assert result.exit_code == 0
        profile = config_manager.load_model_profiles()["priced"]
        assert profile.max_output == 2000
        assert profile.cost_per_1k_input == 0.001

    def test_add_model_reserve_must_fit(self):
        result = runner.invoke(app, ["add-model", "tiny", "-c", "100", "--reserve", "100"])

        assert result.exit_code != 0
        assert "tiny" not in config_manager.load_model_profiles()


def test_version():
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert "depslice v0.1.0" in result.stdout
