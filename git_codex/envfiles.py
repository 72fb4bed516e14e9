"""Copy env-like files (`.env`, `.env.local`, ...) into a task worktree."""

from __future__ import annotations

import fnmatch
import logging
import os
import shutil
from enum import Enum
from pathlib import Path
from typing import Iterable, Sequence

import yaml

from .exceptions import ConfigError, ValidationError
from .models import EnvCopyResult

logger = logging.getLogger(__name__)

DEFAULT_ENV_GLOBS: tuple[str, ...] = (".env", ".env.*")
WORKSPACE_MANIFEST = "pnpm-workspace.yaml"
DEFAULT_PACKAGE_PATTERNS: tuple[str, ...] = ("apps/*", "packages/*")
EXCLUDED_DIRS = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        "node_modules",
        ".pnpm-store",
        ".venv",
        "venv",
        "__pycache__",
        ".tox",
        "dist",
        "build",
        "coverage",
        ".next",
        ".turbo",
    }
)


class EnvScope(str, Enum):
    ROOT = "root"
    ALL = "all"
    PACKAGES = "packages"


def parse_env_scope(value: str | EnvScope) -> EnvScope:
    if isinstance(value, EnvScope):
        return value
    normalized = value.strip().lower()
    try:
        return EnvScope(normalized)
    except ValueError as exc:
        allowed = ", ".join(scope.value for scope in EnvScope)
        raise ValidationError(
            f'Invalid env scope: "{value}". Expected one of: {allowed}.'
        ) from exc


def parse_env_globs(raw: str | Iterable[str]) -> list[str]:
    """Split a comma-separated pattern list, dropping blanks and duplicates."""

    items = raw.split(",") if isinstance(raw, str) else list(raw)
    unique: list[str] = []
    for item in items:
        pattern = item.strip()
        if pattern and pattern not in unique:
            unique.append(pattern)
    return unique


def parse_workspace_package_patterns(text: str, source: str = WORKSPACE_MANIFEST) -> list[str]:
    """Extract the `packages:` globs from a pnpm-workspace manifest."""

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {source}: {exc}") from exc
    if data is None:
        return []
    if not isinstance(data, dict):
        raise ConfigError(f"{source} must contain a mapping.")
    packages = data.get("packages")
    if packages is None:
        return []
    if not isinstance(packages, list) or not all(isinstance(item, str) for item in packages):
        raise ConfigError(f'{source}: "packages" must be a list of strings.')
    # Negated patterns only narrow the set; package roots are matched positively.
    return [item.strip() for item in packages if item.strip() and not item.strip().startswith("!")]


def resolve_package_roots(repo_root: Path) -> list[Path]:
    manifest = repo_root / WORKSPACE_MANIFEST
    patterns: Sequence[str] = DEFAULT_PACKAGE_PATTERNS
    if manifest.is_file():
        declared = parse_workspace_package_patterns(
            manifest.read_text(encoding="utf-8"), source=str(manifest)
        )
        if declared:
            patterns = declared
    roots: set[Path] = set()
    for pattern in patterns:
        cleaned = pattern.removeprefix("./").rstrip("/")
        if not cleaned or cleaned.startswith("/") or ".." in Path(cleaned).parts:
            continue
        for candidate in repo_root.glob(cleaned):
            relative_parts = candidate.relative_to(repo_root).parts
            if candidate.is_dir() and not EXCLUDED_DIRS.intersection(relative_parts):
                roots.add(candidate)
    return sorted(roots)


def collect_env_files(
    repo_root: Path,
    worktree_path: Path,
    patterns: Sequence[str],
    scope: EnvScope,
) -> list[str]:
    """Return matching paths relative to `repo_root`, POSIX separators, sorted."""

    if scope is EnvScope.ROOT:
        matches = {
            entry.name
            for entry in repo_root.iterdir()
            if entry.is_file() and _matches(entry.name, patterns)
        }
    elif scope is EnvScope.ALL:
        matches = set(_walk_matches(repo_root, repo_root, worktree_path, patterns))
    else:
        matches = set()
        for package_root in resolve_package_roots(repo_root):
            matches.update(_walk_matches(repo_root, package_root, worktree_path, patterns))
    return sorted(matches)


def copy_env_files(
    repo_root: Path,
    worktree_path: Path,
    globs: Sequence[str],
    scope: EnvScope | str = EnvScope.ROOT,
    overwrite: bool = False,
) -> EnvCopyResult:
    resolved_scope = parse_env_scope(scope)
    matched = collect_env_files(repo_root, worktree_path, globs, resolved_scope)
    result = EnvCopyResult(scope=resolved_scope.value, matched=matched)
    for relative in matched:
        source = repo_root / relative
        destination = worktree_path / relative
        if destination.exists() and not overwrite:
            result.skipped.append(relative)
            continue
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, destination)
        shutil.copymode(source, destination)
        logger.debug("Copied %s -> %s", source, destination)
        result.copied.append(relative)
    return result


def _matches(relative: str, patterns: Sequence[str]) -> bool:
    parts = relative.split("/")
    for pattern in patterns:
        if "/" not in pattern:
            if fnmatch.fnmatchcase(parts[-1], pattern):
                return True
        elif _match_segments(parts, pattern.removeprefix("./").split("/")):
            return True
    return False


def _match_segments(parts: Sequence[str], pattern: Sequence[str]) -> bool:
    # `*` stays inside one path segment; only `**` spans directories.
    if not pattern:
        return not parts
    head, rest = pattern[0], pattern[1:]
    if head == "**":
        return any(_match_segments(parts[index:], rest) for index in range(len(parts) + 1))
    return bool(parts) and fnmatch.fnmatchcase(parts[0], head) and _match_segments(parts[1:], rest)


def _walk_matches(
    repo_root: Path,
    start: Path,
    worktree_path: Path,
    patterns: Sequence[str],
) -> Iterable[str]:
    skip = _resolved(worktree_path)
    for current, dirnames, filenames in os.walk(start, followlinks=False):
        current_path = Path(current)
        dirnames[:] = sorted(
            name
            for name in dirnames
            if name not in EXCLUDED_DIRS and _resolved(current_path / name) != skip
        )
        for filename in filenames:
            relative = (current_path / filename).relative_to(repo_root).as_posix()
            if _matches(relative, patterns):
                yield relative


def _resolved(path: Path) -> Path:
    try:
        return path.resolve()
    except OSError:
        return path.absolute()


__all__ = [
    "DEFAULT_ENV_GLOBS",
    "EnvScope",
    "parse_env_scope",
    "parse_env_globs",
    "parse_workspace_package_patterns",
    "resolve_package_roots",
    "collect_env_files",
    "copy_env_files",
]
