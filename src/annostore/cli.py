"""Command-line inspection of a project's annotation files.

Usage:
    annostore [--workspace DIR] groups <project>
    annostore [--workspace DIR] tags <project> [--objects] [--style STYLE]
    annostore [--workspace DIR] check <project>
"""

from __future__ import annotations

import sys
from collections import Counter
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from annostore.decoration import DecorationStyle, format_tags
from annostore.models import Group, Tag
from annostore.persistence import ConfigFolder, WorkspaceLocator
from annostore.store import open_store

if TYPE_CHECKING:
    import argparse

    from annostore.config import Settings

console = Console()


def _build_parser() -> argparse.ArgumentParser:
    """Build argparse parser for annostore subcommands."""
    import argparse

    parser = argparse.ArgumentParser(
        prog="annostore",
        description="Inspect and check per-project groups and tags.",
    )
    parser.add_argument(
        "--workspace",
        type=Path,
        default=None,
        help="Workspace directory holding the projects (default: from settings)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    groups_p = sub.add_parser("groups", help="List a project's groups")
    groups_p.add_argument("project", help="Project name")

    tags_p = sub.add_parser("tags", help="List a project's tags")
    tags_p.add_argument("project", help="Project name")
    tags_p.add_argument(
        "--objects", action="store_true", help="Also list tagged objects"
    )
    tags_p.add_argument(
        "--style",
        choices=[s.value for s in DecorationStyle],
        default=None,
        help="Label decoration style for --objects (default: from settings)",
    )

    check_p = sub.add_parser("check", help="Report inconsistencies in the files")
    check_p.add_argument("project", help="Project name")

    return parser


def _settings_for(workspace: Path | None) -> Settings:
    from annostore.config import get_settings

    settings = get_settings()
    if workspace is None:
        return settings
    storage = settings.storage.model_copy(update={"workspace_root": workspace})
    return settings.model_copy(update={"storage": storage})


def _cmd_groups(
    project: str, settings: Settings, *, console: Console | None = None
) -> None:
    """List groups as a Rich table, in hierarchy order."""
    con = console or globals()["console"]
    with open_store(settings, watch=False) as store:
        groups = store.groups.get_all_groups(project)

    if not groups:
        con.print(f"[yellow]No groups in project {project}.[/]")
        return

    table = Table(title=f"Groups of {project}")
    table.add_column("Full path", style="cyan")
    table.add_column("Order", justify="right")
    table.add_column("Objects", justify="right")
    table.add_column("Description")

    for g in sorted(groups, key=lambda g: (g.full_path.split("/"), g.order)):
        table.add_row(
            escape(g.full_path),
            str(g.order),
            str(len(g.children)),
            escape(g.description or ""),
        )

    con.print(table)


def _cmd_tags(
    project: str,
    settings: Settings,
    *,
    objects: bool = False,
    style: str | None = None,
    console: Console | None = None,
) -> None:
    """List tags, and optionally the decorated labels of tagged objects."""
    con = console or globals()["console"]
    with open_store(settings, watch=False) as store:
        tags = store.tags.get_tags(project)
        usage = {
            t.name: len(store.tags.get_objects_by_tag(project, t.name)) for t in tags
        }
        tagged = {}
        if objects:
            tagged = store.tags.find_objects_by_tags(project, list(usage))

    if not tags:
        con.print(f"[yellow]No tags in project {project}.[/]")
        return

    table = Table(title=f"Tags of {project}")
    table.add_column("Name", style="cyan")
    table.add_column("Color")
    table.add_column("Objects", justify="right")
    table.add_column("Description")
    for t in tags:
        table.add_row(
            escape(t.name), t.color, str(usage[t.name]), escape(t.description or "")
        )
    con.print(table)

    if objects and tagged:
        style = style or settings.tags.decoration_style
        obj_table = Table(title="Tagged objects")
        obj_table.add_column("Object", style="cyan")
        obj_table.add_column("Label")
        for fqn in sorted(tagged):
            label = fqn + format_tags(tagged[fqn], style)
            obj_table.add_row(escape(fqn), escape(label))
        con.print(obj_table)


def _load_raw(folder: ConfigFolder, project: str, filename: str) -> Any:
    data = folder.read_bytes(project, filename)
    return yaml.safe_load(data) if data else None


def find_problems(folder: ConfigFolder, project: str, settings: Settings) -> list[str]:
    """Inspect the raw files of a project without repairing them.

    Loading through the store drops duplicates and malformed entries
    silently (with a log warning); this reports them instead.
    """
    problems: list[str] = []
    storage_cfg = settings.storage

    try:
        groups_doc = _load_raw(folder, project, storage_cfg.groups_file)
    except (OSError, yaml.YAMLError) as exc:
        problems.append(f"{storage_cfg.groups_file}: unreadable ({exc})")
        groups_doc = None
    if groups_doc is not None and not isinstance(groups_doc, dict):
        problems.append(f"{storage_cfg.groups_file}: root is not a mapping")
    elif groups_doc:
        problems.extend(_group_problems(groups_doc.get("groups")))

    try:
        tags_doc = _load_raw(folder, project, storage_cfg.tags_file)
    except (OSError, yaml.YAMLError) as exc:
        problems.append(f"{storage_cfg.tags_file}: unreadable ({exc})")
        tags_doc = None
    if tags_doc is not None and not isinstance(tags_doc, dict):
        problems.append(f"{storage_cfg.tags_file}: root is not a mapping")
    elif tags_doc:
        problems.extend(
            _tag_problems(tags_doc.get("tags"), tags_doc.get("assignments"))
        )

    return problems


def _errors(exc: ValidationError) -> str:
    return "; ".join(err["msg"] for err in exc.errors())


def _group_problems(entries: Any) -> list[str]:
    if entries is None:
        return []
    if not isinstance(entries, list):
        return [f"groups is not a list: {entries!r}"]

    problems: list[str] = []
    paths: Counter[str] = Counter()
    owners: dict[str, list[str]] = {}
    for entry in entries:
        try:
            group = Group.model_validate(entry)
        except ValidationError as exc:
            problems.append(f"malformed group entry {entry!r}: {_errors(exc)}")
            continue
        paths[group.full_path] += 1
        for fqn in group.children:
            owners.setdefault(fqn, []).append(group.full_path)

    problems.extend(
        f"duplicate group {path!r} ({count} entries)"
        for path, count in paths.items()
        if count > 1
    )
    problems.extend(
        f"object {fqn} is in more than one group: {', '.join(groups)}"
        for fqn, groups in owners.items()
        if len(groups) > 1
    )
    return problems


def _tag_problems(entries: Any, assignments: Any) -> list[str]:
    problems: list[str] = []
    names: Counter[str] = Counter()
    if entries is not None and not isinstance(entries, list):
        problems.append(f"tags is not a list: {entries!r}")
        entries = None
    for entry in entries or []:
        try:
            tag = Tag.model_validate(entry)
        except ValidationError as exc:
            problems.append(f"malformed tag entry {entry!r}: {_errors(exc)}")
            continue
        if not tag.name.strip():
            problems.append(f"malformed tag entry {entry!r}: empty name")
            continue
        names[tag.name] += 1

    problems.extend(
        f"duplicate tag {name!r} ({count} entries)"
        for name, count in names.items()
        if count > 1
    )
    if assignments is None:
        return problems
    if not isinstance(assignments, dict):
        problems.append("assignments is not a mapping")
        return problems
    for fqn, assigned in assignments.items():
        if isinstance(assigned, str):
            assigned = [assigned]
        if assigned is None:
            continue
        if not isinstance(assigned, list):
            problems.append(f"assignment for {fqn} is not a list: {assigned!r}")
            continue
        for name in assigned:
            if name is not None and str(name) not in names:
                problems.append(f"object {fqn} has unknown tag {name!r}")
    return problems


def _cmd_check(
    project: str, settings: Settings, *, console: Console | None = None
) -> bool:
    """Print problems found in the project's files; True if there were none."""
    con = console or globals()["console"]
    folder = ConfigFolder(
        WorkspaceLocator(settings.storage.workspace_root),
        settings.storage.settings_folder,
    )
    problems = find_problems(folder, project, settings)

    if not problems:
        con.print(f"[green]No problems found in project {project}.[/]")
        return True
    for problem in problems:
        con.print(f"[red]✗[/] {escape(problem)}")
    con.print(f"[red]{len(problems)} problem(s) found in project {project}.[/]")
    return False


def main(argv: list[str] | None = None) -> None:
    """Inspect and check a project's groups and tags.

    Usage:
        annostore [--workspace DIR] <command> <project> [options]

    Commands:
        groups <project>   List groups with their object counts
        tags <project>     List tags (--objects to show tagged objects)
        check <project>    Report duplicates and dangling assignments
    """
    parser = _build_parser()
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)
    settings = _settings_for(args.workspace)

    try:
        match args.command:
            case "groups":
                _cmd_groups(args.project, settings)
            case "tags":
                _cmd_tags(
                    args.project, settings, objects=args.objects, style=args.style
                )
            case "check":
                if not _cmd_check(args.project, settings):
                    sys.exit(1)
    except ValueError as exc:
        console.print(f"[red]Error:[/] {exc}")
        sys.exit(2)
