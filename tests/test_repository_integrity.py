"""Repository-level integrity checks."""

from __future__ import annotations

import ast
import re
import sys
import tomllib
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
CONFLICT_PATTERN = re.compile(r"^(<<<<<<<|=======|>>>>>>>)", re.MULTILINE)
IGNORED_PARTS = {".git", "__pycache__", ".mypy_cache", ".pytest_cache", ".venv"}
LOCAL_PACKAGES = {"tvcatalog", "remotetv"}
# Import names that differ from the distribution declared in pyproject.toml.
DISTRIBUTION_FOR_IMPORT = {"pydantic_settings": "pydantic-settings"}


def _source_files() -> list[Path]:
    files: list[Path] = []
    for package in sorted(LOCAL_PACKAGES):
        files.extend((REPO_ROOT / package).rglob("*.py"))
    return files


def _declared_distributions() -> set[str]:
    pyproject = tomllib.loads((REPO_ROOT / "pyproject.toml").read_text(encoding="utf-8"))
    names: set[str] = set()
    for requirement in pyproject["project"]["dependencies"]:
        match = re.match(r"[A-Za-z0-9_.-]+", requirement)
        if match:
            names.add(match.group(0).lower())
    return names


def test_repository_has_no_merge_conflict_markers() -> None:
    """Ensure no files in the repo still contain git conflict markers."""

    offending_files: list[Path] = []

    for path in REPO_ROOT.rglob("*"):
        if not path.is_file():
            continue
        if any(part in IGNORED_PARTS for part in path.parts):
            continue

        try:
            contents = path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            contents = path.read_text(encoding="utf-8", errors="ignore")

        if CONFLICT_PATTERN.search(contents):
            offending_files.append(path.relative_to(REPO_ROOT))

    assert not offending_files, (
        "The following files still contain git conflict markers: "
        + ", ".join(str(path) for path in offending_files)
    )


def test_third_party_imports_are_declared() -> None:
    """Every non-stdlib import in the packages must be a declared dependency."""

    declared = _declared_distributions()
    missing: set[str] = set()

    for path in _source_files():
        tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                modules = [alias.name for alias in node.names]
            elif isinstance(node, ast.ImportFrom) and node.level == 0 and node.module:
                modules = [node.module]
            else:
                continue
            for module in modules:
                top_level = module.split(".")[0]
                if top_level in LOCAL_PACKAGES or top_level in sys.stdlib_module_names:
                    continue
                distribution = DISTRIBUTION_FOR_IMPORT.get(top_level, top_level)
                if distribution.lower() not in declared:
                    missing.add(f"{path.relative_to(REPO_ROOT)}: {module}")

    assert not missing, "Undeclared imports: " + ", ".join(sorted(missing))
