"""
Tests for breadth-first file discovery.
"""

from repo_context.services.config_loader import DEFAULT_EXTENSIONS
from repo_context.services.file_discovery import FileDiscovery


class TestFileDiscovery:
    """Test candidate file discovery."""

    def test_breadth_first_sorted_order(self, make_repo):
        root = make_repo({
            "z.md": "z\n",
            "a.ts": "a\n",
            "src/b.ts": "b\n",
            "src/deep/c.py": "c\n",
        })

        found = FileDiscovery(root, DEFAULT_EXTENSIONS).discover()

        assert [f.relative_path for f in found] == ["a.ts", "z.md", "src/b.ts", "src/deep/c.py"]
        assert found[0].absolute_path == root / "a.ts"

    def test_skips_ignored_directories(self, make_repo):
        root = make_repo({
            "src/app.ts": "x\n",
            "node_modules/lib/index.js": "x\n",
            ".git/hooks/post.js": "x\n",
            "dist/app.js": "x\n",
            "build/app.js": "x\n",
            ".next/page.js": "x\n",
            ".rag/notes.md": "x\n",
        })

        found = FileDiscovery(root, DEFAULT_EXTENSIONS).discover()

        assert [f.relative_path for f in found] == ["src/app.ts"]

    def test_custom_rag_dir_is_skipped(self, make_repo):
        root = make_repo({"app.ts": "x\n", ".context/cache.json": "{}\n"})

        found = FileDiscovery(root, DEFAULT_EXTENSIONS, rag_dir_name=".context").discover()

        assert [f.relative_path for f in found] == ["app.ts"]

    def test_filters_by_extension(self, make_repo):
        root = make_repo({"keep.ts": "x\n", "KEEP2.TS": "x\n", "drop.txt": "x\n", "drop.png": "x\n"})

        found = FileDiscovery(root, [".ts"]).discover()

        assert sorted(f.relative_path for f in found) == ["KEEP2.TS", "keep.ts"]

    def test_max_files_cap(self, make_repo):
        root = make_repo({f"file{i}.ts": "x\n" for i in range(5)})

        found = FileDiscovery(root, DEFAULT_EXTENSIONS, max_files=3).discover()

        assert [f.relative_path for f in found] == ["file0.ts", "file1.ts", "file2.ts"]

    def test_missing_root(self, tmp_path):
        assert FileDiscovery(tmp_path / "missing", DEFAULT_EXTENSIONS).discover() == []
