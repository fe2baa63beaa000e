"""
Secret file discovery and decryption tests.
"""

import os
from pathlib import PurePath

import pytest

from stack_deploy.decryption import SecretResolver, decrypted_file_name, find_root_paths
from stack_deploy.utils.errors import SecretDecryptionError
from stack_deploy.utils.process import tool_path


def _norm(*paths):
    return [os.path.normpath(p) for p in paths]


class TestFindRootPaths:
    def test_nested_directories_collapse_to_root(self):
        assert find_root_paths(["/a/x/f1", "/a/x/y/f2", "/b/f3"]) == _norm("/a/x", "/b")

    def test_empty_input(self):
        assert find_root_paths([]) == []

    def test_duplicate_directories_are_merged(self):
        assert find_root_paths(["/a/f1", "/a/f2"]) == _norm("/a")

    def test_sibling_with_shared_prefix_is_kept(self):
        assert find_root_paths(["/a/x/f", "/a/xy/f", "/a/x-y/f"]) == _norm("/a/x", "/a/x-y", "/a/xy")

    def test_child_listed_before_parent(self):
        assert find_root_paths(["/srv/app/prod/f", "/srv/app/f"]) == _norm("/srv/app")

    @pytest.mark.parametrize("paths", [
        ["/a/x/f1", "/a/x/y/f2", "/b/f3"],
        ["/r/a/b/c/f", "/r/a/f", "/r/ab/f", "/r/a-b/f", "/r/a/b/f"],
        ["/s/one.yml", "/s/t/two.yml", "/s/t/u/v/three.yml", "/z/f"],
    ])
    def test_no_root_contains_another(self, paths):
        roots = find_root_paths(paths)

        for root in roots:
            for other in roots:
                if root == other:
                    continue
                assert PurePath(other).parts[:len(PurePath(root).parts)] != PurePath(root).parts

        for path in paths:
            parent = PurePath(os.path.dirname(path)).parts
            assert any(parent[:len(PurePath(r).parts)] == PurePath(r).parts for r in roots)


class TestDecryptedFileName:
    def test_marker_is_removed(self):
        assert decrypted_file_name("app.secret.yml") == "app.yml"

    def test_custom_marker(self):
        assert decrypted_file_name("db.sops.env", "sops") == "db.env"


@pytest.fixture
def stack_tree(tmp_path):
    """A checkout with compose files and secret files at several depths."""
    root = tmp_path / "billing-stack"
    (root / "config" / "nested").mkdir(parents=True)
    (root / "docker-compose.yml").write_text("services: {}")
    (root / "app.secret.yml").write_text("enc")
    (root / "config" / "db.secret.env").write_text("enc")
    (root / "config" / "nested" / "tls.secret.pem").write_text("enc")
    (root / "config" / "plain.env").write_text("A=1")
    (root / "secret.txt").write_text("not a secret file")
    return root


class TestScan:
    def test_collects_only_marked_files(self, stack_tree, runner):
        scan = SecretResolver(runner=runner).scan([stack_tree / "docker-compose.yml"])

        assert scan.root_paths == [str(stack_tree)]
        assert scan.secret_files == [
            stack_tree / "app.secret.yml",
            stack_tree / "config" / "db.secret.env",
            stack_tree / "config" / "nested" / "tls.secret.pem",
        ]
        assert scan.warnings == []

    def test_git_directory_is_skipped(self, stack_tree, runner):
        objects = stack_tree / ".git" / "objects"
        objects.mkdir(parents=True)
        (objects / "pack.secret.idx").write_text("binary")

        scan = SecretResolver(runner=runner).scan([stack_tree / "docker-compose.yml"])

        assert all(".git" not in path.parts for path in scan.secret_files)
        assert len(scan.secret_files) == 3

    def test_missing_root_is_a_warning(self, tmp_path, runner):
        scan = SecretResolver(runner=runner).scan([tmp_path / "absent" / "docker-compose.yml"])

        assert scan.secret_files == []
        assert len(scan.warnings) == 1
        assert scan.warnings[0].source == "secret_scan"


class TestResolve:
    def test_decrypts_each_file_beside_itself(self, stack_tree, runner):
        resolver = SecretResolver(bin_path="/opt/tools", runner=runner)

        scan = resolver.resolve([stack_tree / "docker-compose.yml"], {"SOPS_AGE_KEY": "key"})

        assert len(runner.calls) == 3
        first = runner.calls[0]
        assert first.command == tool_path("/opt/tools", "sops")
        assert first.args == ["--output", "app.yml", "--decrypt", "app.secret.yml"]
        assert first.cwd == str(stack_tree)
        assert first.env == {"SOPS_AGE_KEY": "key"}
        assert runner.calls[2].cwd == str(stack_tree / "config" / "nested")
        assert scan.decrypted_files[1] == stack_tree / "config" / "db.env"

    def test_non_matching_files_are_never_decrypted(self, stack_tree, runner):
        SecretResolver(runner=runner).resolve([stack_tree / "docker-compose.yml"])

        decrypted = {call.args[-1] for call in runner.calls}
        assert "plain.env" not in decrypted
        assert "secret.txt" not in decrypted
        assert "docker-compose.yml" not in decrypted

    def test_no_secret_files_is_a_no_op(self, tmp_path, runner):
        (tmp_path / "docker-compose.yml").write_text("services: {}")

        scan = SecretResolver(runner=runner).resolve([tmp_path / "docker-compose.yml"])

        assert scan.secret_files == []
        assert runner.calls == []

    def test_empty_path_list_is_a_no_op(self, runner):
        scan = SecretResolver(runner=runner).resolve([])

        assert scan.root_paths == []
        assert runner.calls == []

    def test_decrypt_failure_aborts(self, stack_tree, runner):
        runner.on("db.secret.env", error="no key found")

        with pytest.raises(SecretDecryptionError) as exc_info:
            SecretResolver(runner=runner).resolve([stack_tree / "docker-compose.yml"])

        assert exc_info.value.context.command == tool_path("", "sops")

        # app.secret.yml decrypted, db failed, tls never attempted
        assert len(runner.calls) == 2
