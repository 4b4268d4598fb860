"""Tests for JSON persistence of graphs and slices."""

import json
from pathlib import Path

import pytest

from depslice.graph_builder import build_full_graph, build_seeded_graph
from depslice.indexer import index_repository
from depslice.reader import DiskFileReader
from depslice.slicer import derive_budget, slice_feature
from depslice.models import RepoIndex
from depslice.storage import OutputStore, graph_from_dict, graph_to_dict, index_to_dict, slice_to_dict


@pytest.fixture
def records(sample_project_path: Path, sample_reader: DiskFileReader):
    return index_repository(sample_project_path, sample_reader)


class TestGraphPersistence:
    """Tests for graph JSON output."""

    def test_save_and_load_graph(self, records, sample_reader, temp_dir: Path):
        """A saved graph loads back equal to the original."""
        graph = build_seeded_graph(["src/app/page.tsx"], records, sample_reader)
        store = OutputStore(temp_dir, temp_dir / "out")

        path = store.save_graph(graph)

        assert path == temp_dir / "out" / "graphs" / "deps.json"
        assert store.load_graph() == graph

    def test_json_layout(self, records, sample_reader):
        graph = build_seeded_graph(["src/app/page.tsx"], records, sample_reader)
        data = graph_to_dict(graph)

        assert data["nodes"][0] == {
            "id": "src/app/page.tsx",
            "type": "page",
            "isExternal": False,
            "isCircular": False,
            "depth": 0,
        }
        assert {"from": "src/app/page.tsx", "to": "src/types/index.ts", "type": "type-only"} in data["edges"]
        assert data["stats"]["total_nodes"] == 8
        assert data["seeds"] == ["src/app/page.tsx"]

    def test_full_graph_nodes_have_no_depth(self, records, sample_reader):
        data = graph_to_dict(build_full_graph(records, sample_reader))
        assert all("depth" not in n for n in data["nodes"])
        assert graph_from_dict(data).nodes[0].depth is None

    def test_output_is_byte_identical_across_runs(self, records, sample_project_path, temp_dir: Path):
        """Two runs over an unchanged tree write the same bytes."""
        first = OutputStore(temp_dir, temp_dir / "a").save_graph(
            build_full_graph(records, DiskFileReader(sample_project_path))
        )
        second = OutputStore(temp_dir, temp_dir / "b").save_graph(
            build_full_graph(index_repository(sample_project_path, DiskFileReader(sample_project_path)),
                             DiskFileReader(sample_project_path))
        )

        assert first.read_bytes() == second.read_bytes()

    def test_missing_graph_loads_as_none(self, temp_dir: Path):
        assert OutputStore(temp_dir).load_graph() is None

    def test_corrupt_graph_loads_as_none(self, temp_dir: Path):
        store = OutputStore(temp_dir)
        store.graphs_dir.mkdir(parents=True)
        (store.graphs_dir / "deps.json").write_text("{not json")

        assert store.load_graph() is None


class TestSlicePersistence:
    """Tests for slice JSON output."""

    def test_save_and_load_slice(self, records, sample_reader, temp_dir: Path):
        result = slice_feature(["src/app/page.tsx"], "dashboard", records, sample_reader,
                               budget=derive_budget(model="gpt-4o"))
        store = OutputStore(temp_dir)

        path = store.save_slice(result, "dashboard")

        assert path == temp_dir / ".depslice" / "slices" / "dashboard.json"
        assert store.load_slice("dashboard") == result

    def test_slice_json_layout(self, records, sample_reader):
        result = slice_feature(["src/app/page.tsx"], "dashboard", records, sample_reader,
                               budget=derive_budget(max_bytes=300))
        data = slice_to_dict(result)

        assert data["type"] == "feature"
        assert data["seedFiles"] == ["src/app/page.tsx"]
        assert data["budget"] == {"dimension": "bytes", "ceiling": 300}
        assert "model" not in data
        assert "tokenBudget" not in data
        assert data["files"][0]["relativePath"] == "src/app/page.tsx"
        assert all(set(e) == {"file", "reason"} for e in data["excluded"])
        assert len(data["files"]) + len(data["excluded"]) == 8

    def test_slice_output_is_stable(self, records, sample_reader, temp_dir: Path):
        result = slice_feature(["src/app/page.tsx"], "dashboard", records, sample_reader)
        first = OutputStore(temp_dir, temp_dir / "a").save_slice(result, "x")
        second = OutputStore(temp_dir, temp_dir / "b").save_slice(
            slice_feature(["src/app/page.tsx"], "dashboard", records, DiskFileReader(sample_reader.root)), "x"
        )

        assert first.read_bytes() == second.read_bytes()
        assert json.loads(first.read_text())["name"] == "dashboard"

    def test_list_slices(self, records, sample_reader, temp_dir: Path):
        store = OutputStore(temp_dir)
        assert store.list_slices() == []

        result = slice_feature(["src/app/page.tsx"], "dashboard", records, sample_reader)
        store.save_slice(result, "b")
        store.save_slice(result, "a")

        assert store.list_slices() == ["a", "b"]
        assert store.load_slice("missing") is None


class TestIndexPersistence:
    """Tests for the saved repository index."""

    def test_save_and_load_index(self, records, sample_project_path: Path, temp_dir: Path):
        index = RepoIndex(repo_root=str(sample_project_path), files=records, git_commit="abc123")
        store = OutputStore(sample_project_path, temp_dir)

        path = store.save_index(index)

        assert path == temp_dir / "index.json"
        assert store.load_index() == index

    def test_index_json_layout(self, records):
        data = index_to_dict(RepoIndex(repo_root="/repo", files=records))
        by_path = {f["relativePath"]: f for f in data["files"]}

        assert data["version"] == "1.0.0"
        assert data["gitCommit"] is None
        assert data["summary"]["totalFiles"] == 10
        assert by_path["src/app/page.tsx"]["routePath"] == "/"
        assert "routePath" not in by_path["src/lib/format.ts"]

    def test_missing_index_loads_as_none(self, temp_dir: Path):
        assert OutputStore(temp_dir).load_index() is None
