"""Tests for CLI argument parsing and command handlers."""

import asyncio
import io
import zipfile

import pytest
from conftest import make_pdf_bytes, page_count, page_rotations, page_widths

from prismpdf import cli
from prismpdf.cli import (
    _parse_order,
    _parse_page_list,
    _parse_rotations,
    apply_reorder,
    build_parser,
    main,
)
from prismpdf.services.operations import ReorderWorkflow, SourceInput
from prismpdf.services.workspace_store import WorkspaceStore
from prismpdf.utils.config_manager import ConfigManager


class TestParsePageList:
    def test_single_page(self):
        assert _parse_page_list("3") == [3]

    def test_range(self):
        assert _parse_page_list("1-5") == [1, 2, 3, 4, 5]

    def test_comma_separated_sorted(self):
        assert _parse_page_list("7,1,3") == [1, 3, 7]

    def test_mixed(self):
        assert _parse_page_list("1-3,7,10-12") == [1, 2, 3, 7, 10, 11, 12]

    def test_deduplicates(self):
        assert _parse_page_list("1-3,2-4") == [1, 2, 3, 4]

    def test_strips_whitespace(self):
        assert _parse_page_list(" 1 , 3 - 5 ") == [1, 3, 4, 5]

    def test_empty_parts_skipped(self):
        assert _parse_page_list(",1,,2,") == [1, 2]

    def test_invalid_raises(self):
        with pytest.raises(ValueError, match="Invalid page specification"):
            _parse_page_list("abc")


class TestParseOrder:
    def test_keeps_order_and_repeats(self):
        assert _parse_order("3,1,1,2") == [3, 1, 1, 2]

    def test_zero_rejected(self):
        with pytest.raises(ValueError):
            _parse_order("0,1")

    def test_invalid_rejected(self):
        with pytest.raises(ValueError, match="Invalid page number"):
            _parse_order("1,x")


class TestParseRotations:
    def test_default_angle(self):
        assert _parse_rotations("2") == {2: 90}

    def test_explicit_angles(self):
        assert _parse_rotations("1:180,3:270") == {1: 180, 3: 270}

    def test_repeats_accumulate(self):
        assert _parse_rotations("1:270,1") == {1: 0}

    def test_negative_angle(self):
        assert _parse_rotations("1:-90") == {1: 270}

    def test_invalid_angle(self):
        with pytest.raises(ValueError, match="multiple of 90"):
            _parse_rotations("1:45")


class TestBuildParser:
    def test_merge_args(self):
        args = build_parser().parse_args(["merge", "a.pdf", "b.pdf", "-o", "out.pdf"])
        assert args.command == "merge"
        assert args.inputs == ["a.pdf", "b.pdf"]
        assert str(args.output) == "out.pdf"
        assert not args.to_workspace

    def test_output_and_workspace_exclusive(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["compress", "a.pdf", "-o", "x.pdf", "--to-workspace"])

    def test_extract_requires_pages(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["extract", "a.pdf"])

    def test_workspace_subcommands(self):
        args = build_parser().parse_args(["workspace", "delete", "id1", "id2"])
        assert args.workspace_command == "delete"
        assert args.ids == ["id1", "id2"]

    def test_global_options(self):
        args = build_parser().parse_args(["-v", "--workspace-dir", "/tmp/ws", "info", "a.pdf"])
        assert args.verbose
        assert str(args.workspace_dir) == "/tmp/ws"


class TestApplyReorder:
    def _open(self, num_pages):
        workflow = ReorderWorkflow()
        asyncio.run(workflow.open(SourceInput.from_bytes(make_pdf_bytes(num_pages), "a.pdf")))
        return workflow

    def _indices(self, workflow):
        return [ref.source_index for ref in workflow.page_set]

    def test_order_with_duplicates_and_drops(self):
        workflow = self._open(4)
        apply_reorder(workflow, order=[3, 1, 1])
        assert self._indices(workflow) == [2, 0, 0]
        assert len(set(workflow.page_set.ids())) == 3
        workflow.close()

    def test_rotations_and_deletions_use_output_positions(self):
        workflow = self._open(3)
        apply_reorder(workflow, order=[3, 2, 1], rotations={1: 90}, deletions=[2])
        assert self._indices(workflow) == [2, 0]
        assert [ref.rotation for ref in workflow.page_set] == [90, 0]
        workflow.close()

    def test_order_out_of_range(self):
        workflow = self._open(2)
        with pytest.raises(ValueError):
            apply_reorder(workflow, order=[3])
        workflow.close()


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Point the CLI at a temporary workspace and settings file."""
    settings = ConfigManager(config_path=str(tmp_path / "settings.json"))
    monkeypatch.setattr(cli, "get_config_manager", lambda: settings)
    workspace = tmp_path / "workspace"
    return ["--workspace-dir", str(workspace)], WorkspaceStore(workspace)


class TestCommands:
    def test_merge_to_file(self, tmp_path, cli_env, capsys):
        global_args, _store = cli_env
        a = tmp_path / "a.pdf"
        b = tmp_path / "b.pdf"
        a.write_bytes(make_pdf_bytes(2, base_width=100))
        b.write_bytes(make_pdf_bytes(1, base_width=300))
        out = tmp_path / "out.pdf"

        assert main([*global_args, "merge", str(a), str(b), "-o", str(out)]) == 0
        assert page_widths(out.read_bytes()) == [100, 101, 300]
        assert "Saved" in capsys.readouterr().out

    def test_merge_missing_file(self, tmp_path, cli_env, capsys):
        global_args, store = cli_env
        a = tmp_path / "a.pdf"
        a.write_bytes(make_pdf_bytes(1))

        code = main([*global_args, "merge", str(a), str(tmp_path / "nope.pdf"), "--to-workspace"])

        assert code == 1
        assert "Error:" in capsys.readouterr().err
        assert store.list() == []

    def test_extract_to_workspace(self, tmp_path, cli_env, capsys):
        global_args, store = cli_env
        src = tmp_path / "src.pdf"
        src.write_bytes(make_pdf_bytes(10))

        assert main([*global_args, "extract", str(src), "--pages", "8,2,4", "--to-workspace"]) == 0

        (record,) = store.list()
        assert page_widths(store.get_content(record.id)) == [101, 103, 107]
        assert record.id in capsys.readouterr().out

    def test_split_all(self, tmp_path, cli_env):
        global_args, _store = cli_env
        src = tmp_path / "src.pdf"
        src.write_bytes(make_pdf_bytes(3))
        out = tmp_path / "pages.zip"

        assert main([*global_args, "split-all", str(src), "-o", str(out)]) == 0
        with zipfile.ZipFile(io.BytesIO(out.read_bytes())) as archive:
            assert archive.namelist() == ["page-1.pdf", "page-2.pdf", "page-3.pdf"]

    def test_reorder_from_workspace(self, tmp_path, cli_env):
        global_args, store = cli_env
        record = store.save(make_pdf_bytes(3), "stored.pdf")
        out = tmp_path / "organized.pdf"

        code = main(
            [
                *global_args,
                "reorder",
                f"workspace:{record.id}",
                "--order",
                "3,1",
                "--rotate",
                "2:180",
                "-o",
                str(out),
            ]
        )

        assert code == 0
        assert page_widths(out.read_bytes()) == [102, 100]
        assert page_rotations(out.read_bytes()) == [0, 180]

    def test_compress(self, tmp_path, cli_env, capsys):
        global_args, store = cli_env
        src = tmp_path / "big.pdf"
        src.write_bytes(make_pdf_bytes(2))

        assert main([*global_args, "compress", str(src), "--to-workspace"]) == 0
        (record,) = store.list()
        assert record.name == "optimized-big.pdf"
        assert page_count(store.get_content(record.id)) == 2

    def test_info(self, tmp_path, cli_env, capsys):
        global_args, _store = cli_env
        src = tmp_path / "doc.pdf"
        src.write_bytes(make_pdf_bytes(4))
        assert main([*global_args, "info", str(src)]) == 0
        assert "Pages:      4" in capsys.readouterr().out

    def test_info_invalid_file(self, tmp_path, cli_env, capsys):
        global_args, _store = cli_env
        src = tmp_path / "junk.pdf"
        src.write_bytes(b"junk")
        assert main([*global_args, "info", str(src)]) == 1
        assert "Error:" in capsys.readouterr().err

    def test_preview_to_file(self, tmp_path, cli_env):
        global_args, _store = cli_env
        src = tmp_path / "doc.pdf"
        src.write_bytes(make_pdf_bytes(2))
        out = tmp_path / "page.png"
        assert main([*global_args, "preview", str(src), "--page", "2", "-o", str(out)]) == 0
        assert out.read_bytes().startswith(b"\x89PNG")

    def test_workspace_commands(self, tmp_path, cli_env, capsys):
        global_args, store = cli_env
        src = tmp_path / "doc.pdf"
        src.write_bytes(b"%PDF-stub")

        assert main([*global_args, "workspace", "add", str(src), "--name", "kept.pdf"]) == 0
        (record,) = store.list()
        assert record.name == "kept.pdf"

        assert main([*global_args, "workspace", "list"]) == 0
        assert "kept.pdf" in capsys.readouterr().out

        out = tmp_path / "exported.pdf"
        assert main([*global_args, "workspace", "export", record.id, "-o", str(out)]) == 0
        assert out.read_bytes() == b"%PDF-stub"

        assert main([*global_args, "workspace", "delete", record.id, record.id]) == 0
        assert store.list() == []
        assert main([*global_args, "workspace", "export", record.id]) == 1

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out.lower()
