"""Command-line interface for class tag indexes."""

from __future__ import annotations

import argparse
import importlib
import json
import logging
import sys
from contextlib import contextmanager
from enum import IntEnum
from pathlib import Path
from typing import Iterator, Optional

from classtags.builder import IndexBuilder
from classtags.codec import load_entries
from classtags.config import (
    load_config,
    ConfigError,
    ClassTagsConfig,
    DEFAULT_CONFIG_PATH,
)
from classtags.incremental import (
    load_state,
    save_state,
    plan_rounds,
    BuildState,
)
from classtags.markers import qualified_name
from classtags.query import TagQuery
from classtags.resolver import EntityNotFound
from classtags.scanner import discover_source_files

logger = logging.getLogger(__name__)


class ExitCode(IntEnum):
    """Process exit codes."""

    SUCCESS = 0
    CONFIG_ERROR = 1
    FILE_SYSTEM_ERROR = 2
    PARTIAL_SUCCESS = 3


def _get_config(config_path: Optional[str]) -> ClassTagsConfig:
    """Load config from an explicit path, or the default location, or defaults."""
    if config_path:
        return load_config(config_path)
    return load_config(Path.cwd() / DEFAULT_CONFIG_PATH)


def _print_error(error: str, message: str, **extra: str) -> None:
    print(json.dumps({"error": error, "message": message, **extra}), file=sys.stderr)


def _forget_modules(roots: list[Path]) -> None:
    """Drop cached modules loaded from ``roots`` so the next import rereads them."""
    resolved = [r.resolve() for r in roots]
    for name, module in list(sys.modules.items()):
        module_file = getattr(module, "__file__", None)
        if not module_file:
            continue
        path = Path(module_file).resolve()
        if any(root == path or root in path.parents for root in resolved):
            del sys.modules[name]


@contextmanager
def _import_roots(roots: list[Path]) -> Iterator[None]:
    """Make ``roots`` importable for the duration of the block."""
    added = []
    for root in reversed(roots):
        entry = str(root)
        if entry not in sys.path:
            sys.path.insert(0, entry)
            added.append(entry)
    _forget_modules(roots)
    importlib.invalidate_caches()
    try:
        yield
    finally:
        _forget_modules(roots)
        for entry in added:
            sys.path.remove(entry)


def cmd_build(args: argparse.Namespace) -> int:
    """Build or update the class tag index."""
    try:
        config = _get_config(args.config)
    except ConfigError as e:
        print(json.dumps(e.to_json()), file=sys.stderr)
        return ExitCode.CONFIG_ERROR

    root = Path.cwd()
    index_path = config.index_path(root)
    state_path = root / config.state_file

    files_by_dir = discover_source_files(root, config.source_dirs, config.skip_dirs)

    full = args.full or not index_path.exists()
    if full:
        print("Building class tag index...")
        previous = BuildState()
    else:
        print("Building class tag index (incremental)...")
        previous = load_state(state_path)

    rounds, state = plan_rounds(root, files_by_dir, previous)
    scanned = sum(len(r.scanned) for r in rounds)
    removed = sum(len(r.removed) for r in rounds)
    print(f"  {scanned} of {state.module_count()} modules changed since last build")
    if removed:
        print(f"  {removed} modules removed since last build")

    source_roots = [root / d for d in files_by_dir]
    builder = IndexBuilder(index_path, config=config)

    with _import_roots(source_roots):
        builder.load()

        for build_round in rounds:
            if build_round.class_names:
                builder.process_round(build_round.class_names)

        try:
            entries = builder.finish()
        except OSError as e:
            _print_error("file_system_error", f"Could not write index: {e}", file=str(index_path))
            return ExitCode.FILE_SYSTEM_ERROR

    state.mark_built()
    save_state(state, state_path)

    entity_count = len({e.entity_name for e in entries})
    print(f"  Indexed {entity_count} tagged classes ({len(entries)} entries)")
    if builder.failed:
        print(f"  Failed to validate {len(builder.failed)} classes")
    print(f"Output: {index_path}")

    if builder.failed:
        return ExitCode.PARTIAL_SUCCESS
    return ExitCode.SUCCESS


def cmd_query(args: argparse.Namespace) -> int:
    """Query the merged class tag index."""
    roots = [Path(r) for r in args.root] if args.root else None
    tag_query = TagQuery(roots=roots)

    for resource in args.resource or []:
        tag_query.resource(resource)
    for tag_name in args.tag or []:
        tag_query.filter(tag_name)
    for tag_name in args.without or []:
        tag_query.filter(lambda tags, name=tag_name: not tags.contains_tag(name))

    not_found: list[EntityNotFound] = []
    tag_query.on_not_found(not_found.append)

    try:
        if args.classes or args.concrete:
            with _import_roots(roots or []):
                if args.concrete:
                    classes = tag_query.list_concrete_entities()
                else:
                    classes = tag_query.list_entities()
            for cls in classes:
                print(qualified_name(cls))
        elif args.tags:
            for entity in tag_query.list_entity_tags():
                print(f"{entity.entity_name}: {', '.join(sorted(entity.tags))}")
        else:
            for name in tag_query.list_entity_names():
                print(name)
    except OSError as e:
        _print_error("file_system_error", f"Could not read index fragment: {e}")
        return ExitCode.FILE_SYSTEM_ERROR

    if not_found:
        for error in not_found:
            print(f"Not found: {error}", file=sys.stderr)
        return ExitCode.PARTIAL_SUCCESS
    return ExitCode.SUCCESS


def cmd_status(args: argparse.Namespace) -> int:
    """Show the status of this project's index."""
    try:
        config = _get_config(args.config)
    except ConfigError as e:
        print(json.dumps(e.to_json()), file=sys.stderr)
        return ExitCode.CONFIG_ERROR

    root = Path.cwd()
    index_path = config.index_path(root)

    print("Class Tags Status")
    print("=" * 40)

    if not index_path.exists():
        print("\nIndex: NOT FOUND")
        print(f"  Expected at: {index_path}")
        print("\nRun 'classtags build' to create it.")
        return ExitCode.SUCCESS

    try:
        entries = load_entries(index_path)
    except OSError as e:
        _print_error("file_system_error", f"Could not read index: {e}", file=str(index_path))
        return ExitCode.FILE_SYSTEM_ERROR

    state = load_state(root / config.state_file)
    by_tag: dict[str, int] = {}
    for entry in entries:
        by_tag[entry.tag_name] = by_tag.get(entry.tag_name, 0) + 1

    print(f"\nIndex: {index_path}")
    print(f"  Last build: {state.last_build or 'unknown'}")
    print(f"  Entries: {len(entries)}")
    print(f"  Classes: {len({e.entity_name for e in entries})}")
    if by_tag:
        print("  By tag:")
        for tag_name in sorted(by_tag):
            print(f"    {tag_name}: {by_tag[tag_name]}")

    return ExitCode.SUCCESS


MINIMAL_CONFIG = """# Class tags configuration

# Classes to treat as tags without the @tag marker, ';'-separated or a list
externalTags: ""

source_dirs: [src]
skip_dirs: [__pycache__, .git, node_modules, .venv, tests]

# Index is written to <output_dir>/<index_file>; defaults to the first source dir
index_file: classtags.idx
state_file: .classtags-state.json
"""


def cmd_init(_args: argparse.Namespace) -> int:
    """Initialize class tags in the current project."""
    root = Path.cwd()

    print("Initializing class tags...")

    config_path = root / DEFAULT_CONFIG_PATH
    if config_path.exists():
        print(f"  Config already exists: {config_path}")
    else:
        config_path.write_text(MINIMAL_CONFIG, encoding="utf-8")
        print(f"  Created {config_path} with defaults")

    # Keep the build state out of version control
    gitignore_path = root / ".gitignore"
    state_pattern = ClassTagsConfig().state_file
    if gitignore_path.exists():
        content = gitignore_path.read_text()
        if state_pattern not in content:
            with open(gitignore_path, "a") as f:
                f.write(f"\n# Class tags build state\n{state_pattern}\n")
            print(f"  Added {state_pattern} to .gitignore")
    else:
        gitignore_path.write_text(f"# Class tags build state\n{state_pattern}\n")
        print(f"  Created .gitignore with {state_pattern}")

    print("\nNext steps:")
    print(f"  1. Edit {DEFAULT_CONFIG_PATH} to list your source dirs")
    print("  2. Run 'classtags build' to build the index")
    print("  3. Query with 'classtags query --tag <name>'")

    return ExitCode.SUCCESS


def _add_config_arg(parser: argparse.ArgumentParser) -> None:
    """Add --config argument to a parser."""
    parser.add_argument(
        "--config",
        "-c",
        help=f"Path to config file (default: {DEFAULT_CONFIG_PATH})",
    )


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="classtags",
        description="Build and query indexes of tagged Python classes",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser(
        "init",
        help="Initialize class tags in current project",
    )

    build_parser = subparsers.add_parser(
        "build",
        help="Build or update the class tag index",
    )
    _add_config_arg(build_parser)
    build_parser.add_argument(
        "--full",
        action="store_true",
        help="Re-scan every source file instead of only changed ones",
    )

    query_parser = subparsers.add_parser(
        "query",
        help="Query the merged class tag index",
    )
    query_parser.add_argument("--tag", action="append", help="Only classes with this tag")
    query_parser.add_argument("--without", action="append", help="Exclude classes with this tag")
    query_parser.add_argument("--resource", action="append", help="Extra index file to read")
    query_parser.add_argument(
        "--root", action="append", help="Directory to search for index files (default: sys.path)"
    )
    output = query_parser.add_mutually_exclusive_group()
    output.add_argument("--tags", action="store_true", help="Show the tags of each class")
    output.add_argument("--classes", action="store_true", help="Import and list classes")
    output.add_argument("--concrete", action="store_true", help="Import and list concrete classes")

    status_parser = subparsers.add_parser(
        "status",
        help="Show index status",
    )
    _add_config_arg(status_parser)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    commands = {
        "init": cmd_init,
        "build": cmd_build,
        "query": cmd_query,
        "status": cmd_status,
    }

    return commands[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
