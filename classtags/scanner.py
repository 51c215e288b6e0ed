"""AST scanning of Python sources for class definitions."""

from __future__ import annotations

import ast
from pathlib import Path
from typing import Iterable, Optional


def _parse_python_file(file_path: Path) -> Optional[ast.AST]:
    """Parse a Python file and return its AST.

    Returns None if the file cannot be parsed (not Python, syntax error, etc.)
    """
    if file_path.suffix.lower() != ".py":
        return None

    try:
        content = file_path.read_text(encoding="utf-8")
        return ast.parse(content, filename=str(file_path))
    except (SyntaxError, UnicodeDecodeError, IOError):
        return None


def module_name_for(root: Path | str, file_path: Path | str) -> Optional[str]:
    """Dotted module name of a source file relative to a source root.

    ``pkg/__init__.py`` maps to ``pkg``; ``pkg/mod.py`` to ``pkg.mod``.

    Returns:
        The module name, or None if the file is outside ``root`` or is not
        a Python file.
    """
    root = Path(root)
    file_path = Path(file_path)
    if file_path.suffix != ".py":
        return None

    try:
        relative = file_path.relative_to(root)
    except ValueError:
        return None

    parts = list(relative.with_suffix("").parts)
    if parts and parts[-1] == "__init__":
        parts.pop()
    if not parts or not all(p.isidentifier() for p in parts):
        return None
    return ".".join(parts)


def _collect_classes(body: Iterable[ast.stmt], prefix: str, into: list[str]) -> None:
    for node in body:
        if isinstance(node, ast.ClassDef):
            name = f"{prefix}.{node.name}"
            into.append(name)
            _collect_classes(node.body, name, into)
        elif isinstance(node, (ast.If, ast.Try)):
            # Conditional definitions still land in the module namespace
            _collect_classes(node.body, prefix, into)
            _collect_classes(node.orelse, prefix, into)
            for handler in getattr(node, "handlers", []):
                _collect_classes(handler.body, prefix, into)
            _collect_classes(getattr(node, "finalbody", []), prefix, into)


def list_class_names(file_path: Path | str, module_name: str) -> list[str]:
    """List the importable names of every class defined in a file.

    Nested classes are included (``module.Outer.Inner``). Classes defined
    inside functions are skipped, they cannot be imported by name.

    Args:
        file_path: Path to the Python file.
        module_name: Dotted module name of the file.

    Returns:
        Class names in source order, empty if the file cannot be parsed.
    """
    tree = _parse_python_file(Path(file_path))
    if tree is None:
        return []

    names: list[str] = []
    _collect_classes(tree.body, module_name, names)
    return names


def discover_source_files(
    root: Path,
    source_dirs: list[str],
    skip_dirs: list[str],
) -> dict[str, list[str]]:
    """Find the Python files of each source directory.

    Args:
        root: Project root directory.
        source_dirs: Source roots relative to ``root``; each is an import root.
        skip_dirs: Directory names to ignore anywhere in a path.

    Returns:
        Mapping of source dir to sorted file paths relative to ``root``.
    """
    result: dict[str, list[str]] = {}

    for source_dir in source_dirs:
        scan_root = root / source_dir
        if not scan_root.is_dir():
            continue

        files = []
        for py_file in scan_root.rglob("*.py"):
            relative = py_file.relative_to(root)
            # Use path component matching, not substring
            inner_parts = py_file.relative_to(scan_root).parts
            if any(skip in inner_parts for skip in skip_dirs):
                continue
            files.append(relative.as_posix())
        result[source_dir] = sorted(files)

    return result
