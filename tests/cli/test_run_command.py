"""Tests for the sbuild run command."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock

from click.testing import CliRunner

from searchbuild.cli.main import cli
from searchbuild.index.writer import count_documents

runner = CliRunner()


def printed(console: MagicMock) -> str:
    return "\n".join(str(call.args[0]) for call in console.print.call_args_list if call.args)


def run_args(shop_url: str, index_dir: Path, notes_dir: Path, *extra: str) -> list[str]:
    return [
        "run",
        "--url",
        shop_url,
        "--index-dir",
        str(index_dir),
        "--search-path",
        str(notes_dir),
        "-m",
        "cli_notes_models",
        *extra,
    ]


class TestRunSuccess:
    def test_indexes_tagged_models(
        self, shop_url: str, index_dir: Path, notes_dir: Path, console: MagicMock
    ) -> None:
        result = runner.invoke(cli, run_args(shop_url, index_dir, notes_dir))

        assert result.exit_code == 0, result.output
        assert count_documents(str(index_dir / "CliNote")) == 2
        output = printed(console)
        assert "Dropped and recreated index directory" in output
        assert "Indexed 2 records across 1 type" in output

    def test_json_outcome(
        self, shop_url: str, index_dir: Path, notes_dir: Path, console: MagicMock
    ) -> None:
        result = runner.invoke(cli, run_args(shop_url, index_dir, notes_dir, "--json"))

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["status"] == "success"
        assert data["records"] == {"CliNote": 2}
        assert data["documents_flushed"] == 2
        assert data["final_state"] == "closed"
        assert data["error"] is None
        assert data["run_id"]

    def test_no_drop_keeps_directory(
        self, shop_url: str, index_dir: Path, notes_dir: Path, console: MagicMock
    ) -> None:
        index_dir.mkdir()
        (index_dir / "keep.txt").write_text("mine")

        result = runner.invoke(cli, run_args(shop_url, index_dir, notes_dir, "--no-drop"))

        assert result.exit_code == 0, result.output
        assert (index_dir / "keep.txt").exists()
        assert "Using index directory" in printed(console)

    def test_shards_option(
        self, shop_url: str, index_dir: Path, notes_dir: Path, console: MagicMock
    ) -> None:
        result = runner.invoke(cli, run_args(shop_url, index_dir, notes_dir, "--shards", "2"))

        assert result.exit_code == 0, result.output
        assert sorted(p.name for p in index_dir.iterdir()) == ["CliNote.0", "CliNote.1"]

    def test_settings_from_config_file(
        self, shop_url: str, notes_dir: Path, tmp_path: Path, console: MagicMock
    ) -> None:
        config_file = tmp_path / "work" / "searchbuild.yaml"
        config_file.write_text(
            f"store:\n"
            f"  url: {shop_url}\n"
            f"index:\n"
            f"  index_dir: {tmp_path / 'from-yaml'}\n"
            f"mapping:\n"
            f"  modules: [cli_notes_models]\n"
            f"  search_paths: ['{notes_dir}']\n"
        )

        result = runner.invoke(cli, ["run"])

        assert result.exit_code == 0, result.output
        assert count_documents(str(tmp_path / "from-yaml" / "CliNote")) == 2

    def test_skip_needs_no_settings(self, index_dir: Path, console: MagicMock) -> None:
        result = runner.invoke(cli, ["run", "--skip", "--index-dir", str(index_dir)])

        assert result.exit_code == 0, result.output
        assert "Skipping search index population" in printed(console)
        assert not index_dir.exists()


class TestRunFailure:
    def test_failed_type_exits_1(
        self, shop_url: str, index_dir: Path, console: MagicMock
    ) -> None:
        # shop_models also defines a tagged class with no table
        result = runner.invoke(
            cli,
            ["run", "--url", shop_url, "--index-dir", str(index_dir), "-m", "shop_models"]
            + ["--json"],
        )

        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["status"] == "failure"
        assert data["error"]["error"] == "READ_UNMAPPABLE_TYPE"
        assert data["error"]["details"]["type"] == "Draft"
        assert data["final_state"] == "failed"
        assert "READ_UNMAPPABLE_TYPE" in printed(console)

    def test_unreachable_store_exits_1(
        self, tmp_path: Path, index_dir: Path, notes_dir: Path, console: MagicMock
    ) -> None:
        bad_url = f"sqlite:///{tmp_path / 'nowhere' / 'shop.db'}"

        result = runner.invoke(cli, run_args(bad_url, index_dir, notes_dir))

        assert result.exit_code == 1
        assert "CONNECT_FAILED" in printed(console)

    def test_missing_store_url(self, index_dir: Path, console: MagicMock) -> None:
        result = runner.invoke(cli, ["run", "--index-dir", str(index_dir)])

        assert result.exit_code == 1
        assert "store.url" in result.output
        assert not index_dir.exists()

    def test_missing_index_dir(self, shop_url: str, console: MagicMock) -> None:
        result = runner.invoke(cli, ["run", "--url", shop_url])

        assert result.exit_code == 1
        assert "index.index_dir" in result.output

    def test_unknown_mapping_module(
        self, shop_url: str, index_dir: Path, console: MagicMock
    ) -> None:
        result = runner.invoke(
            cli,
            ["run", "--url", shop_url, "--index-dir", str(index_dir), "-m", "cli_missing_models"],
        )

        assert result.exit_code == 1
        assert "mapping.modules" in printed(console)

    def test_invalid_yaml(self, tmp_path: Path, console: MagicMock) -> None:
        (tmp_path / "work" / "searchbuild.yaml").write_text("store: [unclosed\n")

        result = runner.invoke(cli, ["run"])

        assert result.exit_code == 1
        assert "CONFIG_PARSE_ERROR" in result.output


class TestRunUsage:
    def test_shards_must_be_positive(self) -> None:
        result = runner.invoke(cli, ["run", "--shards", "0"])

        assert result.exit_code == 2

    def test_config_file_must_exist(self) -> None:
        result = runner.invoke(cli, ["run", "-c", "missing.yaml"])

        assert result.exit_code == 2

    def test_unknown_directory_provider(self) -> None:
        result = runner.invoke(cli, ["run", "--directory-provider", "s3"])

        assert result.exit_code == 2

    def test_version(self) -> None:
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "0.1.0" in result.output
