"""Per-module state carried between class tag builds.

The state file remembers, for each module of each source dir, a digest of
its source and the classes it defined. A build rescans only the modules
whose digest changed and plans one round per source dir: the classes of
changed modules, plus the classes of modules that disappeared so the
builder retracts them straight away.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from classtags.scanner import list_class_names, module_name_for

logger = logging.getLogger(__name__)

STATE_VERSION = 1


@dataclass
class ModuleRecord:
    """One module as seen by the last build."""

    digest: str
    classes: list[str] = field(default_factory=list)


@dataclass
class BuildState:
    """Persisted state for incremental builds."""

    modules: dict[str, dict[str, ModuleRecord]] = field(default_factory=dict)  # source dir -> module -> record
    last_build: Optional[str] = None  # ISO timestamp

    def module_count(self) -> int:
        return sum(len(records) for records in self.modules.values())

    def mark_built(self) -> None:
        self.last_build = datetime.now(timezone.utc).isoformat()


@dataclass
class BuildRound:
    """Classes one source dir presents to the builder."""

    source_dir: str
    scanned: list[str] = field(default_factory=list)  # changed or new modules
    removed: list[str] = field(default_factory=list)  # modules gone since last build
    class_names: list[str] = field(default_factory=list)


def source_digest(file_path: Path) -> Optional[str]:
    """SHA-256 of a source file, or None if it cannot be read."""
    try:
        return hashlib.sha256(file_path.read_bytes()).hexdigest()
    except OSError:
        return None


def load_state(state_path: Path | str) -> BuildState:
    """Load build state, empty if the file is missing, corrupt or outdated."""
    state_path = Path(state_path)

    try:
        data = json.loads(state_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return BuildState()
    except (OSError, ValueError) as e:
        logger.warning(f"Ignoring unreadable build state {state_path}: {e}")
        return BuildState()

    if not isinstance(data, dict) or data.get("version") != STATE_VERSION:
        logger.info(f"Ignoring build state in an older format: {state_path}")
        return BuildState()

    try:
        modules = {
            source_dir: {
                module_name: ModuleRecord(record["digest"], list(record.get("classes", [])))
                for module_name, record in records.items()
            }
            for source_dir, records in data.get("modules", {}).items()
        }
    except (AttributeError, KeyError, TypeError) as e:
        logger.warning(f"Ignoring malformed build state {state_path}: {e}")
        return BuildState()

    return BuildState(modules=modules, last_build=data.get("last_build"))


def save_state(state: BuildState, state_path: Path | str) -> None:
    """Write build state as stable, sorted JSON."""
    state_path = Path(state_path)
    state_path.parent.mkdir(parents=True, exist_ok=True)

    data = {
        "version": STATE_VERSION,
        "last_build": state.last_build,
        "modules": {
            source_dir: {
                module_name: {"digest": record.digest, "classes": record.classes}
                for module_name, record in records.items()
            }
            for source_dir, records in state.modules.items()
        },
    }

    state_path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")


def _plan_source_dir(
    root: Path,
    source_dir: str,
    files: list[str],
    known: dict[str, ModuleRecord],
) -> tuple[BuildRound, dict[str, ModuleRecord]]:
    build_round = BuildRound(source_dir)
    records: dict[str, ModuleRecord] = {}

    for file_path in files:
        path = root / file_path
        module_name = module_name_for(root / source_dir, path)
        if module_name is None:
            continue
        digest = source_digest(path)
        if digest is None:
            continue

        previous = known.get(module_name)
        if previous is not None and previous.digest == digest:
            records[module_name] = previous
            continue

        classes = list_class_names(path, module_name)
        records[module_name] = ModuleRecord(digest, classes)
        build_round.scanned.append(module_name)
        build_round.class_names.extend(classes)
        if previous is not None:
            # Classes deleted from a module that still exists
            build_round.class_names.extend(c for c in previous.classes if c not in classes)

    for module_name in sorted(set(known) - set(records)):
        build_round.removed.append(module_name)
        build_round.class_names.extend(known[module_name].classes)

    return build_round, records


def plan_rounds(
    root: Path,
    files_by_dir: dict[str, list[str]],
    previous: BuildState,
) -> tuple[list[BuildRound], BuildState]:
    """Work out what each source dir must present to the builder.

    Args:
        root: Project root directory.
        files_by_dir: Source dir to ``.py`` paths relative to ``root``, as
            returned by ``discover_source_files``.
        previous: State of the last build (empty for a full build).

    Returns:
        One round per source dir, including source dirs that vanished, and
        the state describing the sources as they are now.
    """
    rounds = []
    current = BuildState()

    for source_dir, files in files_by_dir.items():
        build_round, records = _plan_source_dir(
            root, source_dir, files, previous.modules.get(source_dir, {})
        )
        current.modules[source_dir] = records
        rounds.append(build_round)

    for source_dir in sorted(set(previous.modules) - set(files_by_dir)):
        build_round, _ = _plan_source_dir(root, source_dir, [], previous.modules[source_dir])
        rounds.append(build_round)

    return rounds, current
