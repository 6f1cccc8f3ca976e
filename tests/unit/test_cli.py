"""Tests for the annostore command line.

Parser tests check argument wiring; command tests render into a Rich
Console backed by StringIO.
"""

from __future__ import annotations

from io import StringIO
from typing import TYPE_CHECKING

import pytest
from rich.console import Console

from annostore.cli import (
    _build_parser,
    _cmd_check,
    _cmd_groups,
    _cmd_tags,
    find_problems,
    main,
)
from annostore.store import open_store

if TYPE_CHECKING:
    from pathlib import Path

    from annostore.config import Settings
    from annostore.persistence import ConfigFolder

PROJECT = "demo"


def _capture_console() -> tuple[Console, StringIO]:
    """Create a Rich Console that writes to a StringIO buffer."""
    buf = StringIO()
    return Console(file=buf, width=120, force_terminal=False), buf


class TestParser:
    """Argument parsing."""

    def test_groups(self) -> None:
        args = _build_parser().parse_args(["groups", "demo"])
        assert (args.command, args.project, args.workspace) == ("groups", "demo", None)

    def test_workspace_option(self, tmp_path: Path) -> None:
        args = _build_parser().parse_args(["--workspace", str(tmp_path), "check", "p"])
        assert args.workspace == tmp_path

    def test_tags_options(self) -> None:
        args = _build_parser().parse_args(
            ["tags", "demo", "--objects", "--style", "count"]
        )
        assert args.objects is True
        assert args.style == "count"

    def test_bad_style_rejected(self) -> None:
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["tags", "demo", "--style", "fancy"])

    def test_no_subcommand_fails(self) -> None:
        with pytest.raises(SystemExit):
            _build_parser().parse_args([])


class TestListCommands:
    """groups and tags output."""

    def test_groups_table(self, settings: Settings) -> None:
        with open_store(settings) as store:
            store.groups.create_group(PROJECT, "Utils", "CommonModules", "shared")
            store.groups.add_object_to_group(
                PROJECT, "CommonModule.Foo", "CommonModules/Utils"
            )
        con, buf = _capture_console()
        _cmd_groups(PROJECT, settings, console=con)
        out = buf.getvalue()
        assert "CommonModules/Utils" in out
        assert "shared" in out

    def test_groups_empty(self, settings: Settings) -> None:
        con, buf = _capture_console()
        _cmd_groups(PROJECT, settings, console=con)
        assert "No groups" in buf.getvalue()

    def test_tags_with_objects(self, settings: Settings) -> None:
        with open_store(settings) as store:
            store.tags.create_tag(PROJECT, "bug", "#ff0000")
            store.tags.create_tag(PROJECT, "critical")
            store.tags.assign_tag(PROJECT, "Catalog.Items", "bug")
            store.tags.assign_tag(PROJECT, "Catalog.Items", "critical")
        con, buf = _capture_console()
        _cmd_tags(PROJECT, settings, objects=True, style="count", console=con)
        out = buf.getvalue()
        assert "#ff0000" in out
        assert "Catalog.Items [2 tags]" in out

    def test_object_names_printed_literally(self, settings: Settings) -> None:
        """Square brackets in an FQN are text, not Rich markup."""
        with open_store(settings) as store:
            store.tags.create_tag(PROJECT, "bug")
            store.tags.assign_tag(PROJECT, "Doc.[bold]X", "bug")
        con, buf = _capture_console()
        _cmd_tags(PROJECT, settings, objects=True, style="count", console=con)
        assert buf.getvalue().count("Doc.[bold]X") == 2

    def test_tags_empty(self, settings: Settings) -> None:
        con, buf = _capture_console()
        _cmd_tags(PROJECT, settings, console=con)
        assert "No tags" in buf.getvalue()


class TestCheck:
    """Problems the store would silently repair on load."""

    def test_clean_project(self, settings: Settings) -> None:
        with open_store(settings) as store:
            store.tags.create_tag(PROJECT, "bug")
            store.tags.assign_tag(PROJECT, "X", "bug")
        con, buf = _capture_console()
        assert _cmd_check(PROJECT, settings, console=con)
        assert "No problems" in buf.getvalue()

    def test_reports_problems(
        self, folder: ConfigFolder, settings: Settings, settings_dir: Path
    ) -> None:
        (settings_dir / "metadata-groups.yaml").write_text(
            "groups:\n"
            "- name: A\n  children: [X]\n"
            "- name: A\n"
            "- name: B\n  children: [X]\n"
        )
        (settings_dir / "metadata-tags.yaml").write_text(
            "tags:\n- name: bug\n- name: bug\n"
            "assignments:\n  Y: [bug, ghost]\n"
        )
        problems = find_problems(folder, PROJECT, settings)
        assert "duplicate group 'A' (2 entries)" in problems
        assert "object X is in more than one group: A, B" in problems
        assert "duplicate tag 'bug' (2 entries)" in problems
        assert "object Y has unknown tag 'ghost'" in problems
        assert len(problems) == 4

    def test_unreadable_file_reported(
        self, folder: ConfigFolder, settings: Settings, settings_dir: Path
    ) -> None:
        (settings_dir / "metadata-tags.yaml").write_text("tags: [unclosed")
        (settings_dir / "metadata-groups.yaml").write_text("- a list\n")
        problems = find_problems(folder, PROJECT, settings)
        assert problems[0] == "metadata-groups.yaml: root is not a mapping"
        assert problems[1].startswith("metadata-tags.yaml: unreadable")

    def test_wrong_shapes_reported_not_raised(
        self, folder: ConfigFolder, settings: Settings, settings_dir: Path
    ) -> None:
        (settings_dir / "metadata-groups.yaml").write_text("groups: 5\n")
        (settings_dir / "metadata-tags.yaml").write_text(
            "tags: {bug: 1}\nassignments:\n  Catalog.A: 5\n"
        )
        problems = find_problems(folder, PROJECT, settings)
        assert problems == [
            "groups is not a list: 5",
            "tags is not a list: {'bug': 1}",
            "assignment for Catalog.A is not a list: 5",
        ]

    def test_malformed_entries_reported(
        self, folder: ConfigFolder, settings: Settings, settings_dir: Path
    ) -> None:
        (settings_dir / "metadata-groups.yaml").write_text(
            "groups:\n"
            "- name: A\n  children: 5\n"
            "- name: a/b\n"
            "- name: B\n  order: first\n"
            "- name: C\n"
        )
        (settings_dir / "metadata-tags.yaml").write_text(
            "tags:\n- junk\n- name: ok\n"
        )
        problems = find_problems(folder, PROJECT, settings)
        assert len(problems) == 4
        assert all(p.startswith("malformed") for p in problems)
        assert problems[1].startswith("malformed group entry {'name': 'a/b'}")
        assert problems[3].startswith("malformed tag entry 'junk'")


class TestMain:
    """Exit status of the console script."""

    def test_check_exits_nonzero_on_problems(
        self, workspace: Path, settings_dir: Path
    ) -> None:
        (settings_dir / "metadata-tags.yaml").write_text("assignments:\n  Y: ghost\n")
        with pytest.raises(SystemExit) as excinfo:
            main(["--workspace", str(workspace), "check", PROJECT])
        assert excinfo.value.code == 1

    def test_check_passes_on_empty_project(self, workspace: Path) -> None:
        main(["--workspace", str(workspace), "check", PROJECT])

    def test_invalid_project_name(self, workspace: Path) -> None:
        with pytest.raises(SystemExit) as excinfo:
            main(["--workspace", str(workspace), "groups", ".."])
        assert excinfo.value.code == 2

    def test_check_survives_wrongly_shaped_file(
        self, workspace: Path, settings_dir: Path
    ) -> None:
        (settings_dir / "metadata-tags.yaml").write_text("assignments:\n  X: 5\n")
        with pytest.raises(SystemExit) as excinfo:
            main(["--workspace", str(workspace), "check", PROJECT])
        assert excinfo.value.code == 1
