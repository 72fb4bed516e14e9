"""Layered configuration: defaults, git config, JSON files and CLI flags."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Callable, Literal, Mapping, TypeVar

from . import git
from .envfiles import DEFAULT_ENV_GLOBS, EnvScope, parse_env_globs, parse_env_scope
from .exceptions import ConfigError, ValidationError
from .planner import DEFAULT_REMOTE
from .tasks import normalize_branch_prefix
from .templates import TemplateType, normalize_template_type

logger = logging.getLogger(__name__)

CURRENT_BRANCH_BASE_SENTINEL = "__git_codex_current_branch__"
GIT_CONFIG_NAMESPACE = "codex"
REPO_CONFIG_FILENAME = ".git-codexrc.json"

T = TypeVar("T")


def global_config_path() -> Path:
    return Path.home() / ".config" / "git-codex" / "config.json"


@dataclass(slots=True, frozen=True)
class PartialConfig:
    """One configuration layer. `None` means the layer does not set the field."""

    base: str | None = None
    branch_prefix: str | None = None
    dir: str | None = None
    copy_env: bool | None = None
    env_globs: tuple[str, ...] | None = None
    env_scope: EnvScope | None = None
    overwrite_env: bool | None = None
    template: bool | None = None
    template_file: str | None = None
    template_type: TemplateType | None = None
    overwrite_template: bool | None = None
    fetch: bool | None = None
    open: bool | None = None

    def defined(self) -> dict[str, Any]:
        return {
            item.name: getattr(self, item.name)
            for item in fields(self)
            if getattr(self, item.name) is not None
        }


@dataclass(slots=True, frozen=True)
class EffectiveConfig:
    base: str
    branch_prefix: str
    dir: str | None
    copy_env: bool
    env_globs: tuple[str, ...]
    env_scope: EnvScope
    overwrite_env: bool
    template: bool
    template_file: str | None
    template_type: TemplateType
    overwrite_template: bool
    fetch: bool
    open: bool


ADD_DEFAULTS = EffectiveConfig(
    base=CURRENT_BRANCH_BASE_SENTINEL,
    branch_prefix="codex/",
    dir=None,
    copy_env=True,
    env_globs=DEFAULT_ENV_GLOBS,
    env_scope=EnvScope.ROOT,
    overwrite_env=False,
    template=False,
    template_file=None,
    template_type=TemplateType.DEFAULT,
    overwrite_template=False,
    fetch=True,
    open=True,
)


@dataclass(slots=True, frozen=True)
class RmConfig:
    dir: str | None
    force_delete: bool


@dataclass(slots=True, frozen=True)
class ListConfig:
    branch_prefix: str
    pretty: bool


@dataclass(slots=True, frozen=True)
class OpenConfig:
    dir: str | None
    branch_prefix: str
    open: bool


@dataclass(slots=True, frozen=True)
class PromptConfig:
    dir: str | None
    branch_prefix: str


@dataclass(slots=True, frozen=True)
class FinishConfig:
    dir: str | None
    branch_prefix: str
    force_delete: bool
    cleanup: bool
    delete_branch: bool


def merge_config_layers(defaults: EffectiveConfig, *layers: PartialConfig) -> EffectiveConfig:
    """Apply layers left to right; a later defined value always wins."""

    merged: dict[str, Any] = {}
    for layer in layers:
        merged.update(layer.defined())
    return replace(defaults, **merged)


def parse_boolean_like(value: str) -> bool | None:
    normalized = value.strip().lower()
    if normalized in {"true", "1", "yes", "on"}:
        return True
    if normalized in {"false", "0", "no", "off"}:
        return False
    return None


def parse_git_config_map(entries: Mapping[str, str | None], source: str = "git config") -> PartialConfig:
    """Convert `codex.*` git config entries into a partial config.

    A None value is a key written without `=`, which git reads as true for
    boolean keys.
    """

    normalized = {key.lower(): value for key, value in entries.items()}

    def text(key: str) -> str | None:
        raw = normalized.get(f"{GIT_CONFIG_NAMESPACE}.{key.lower()}")
        if raw is None:
            return None
        return raw.strip() or None

    def flag(key: str) -> bool | None:
        name = f"{GIT_CONFIG_NAMESPACE}.{key.lower()}"
        if name in normalized and normalized[name] is None:
            return True
        raw = text(key)
        if raw is None:
            return None
        parsed = parse_boolean_like(raw)
        if parsed is None:
            raise ConfigError(
                f'{source}: "{GIT_CONFIG_NAMESPACE}.{key}" must be a boolean (true/false), got "{raw}".'
            )
        return parsed

    open_value = flag("open")
    if open_value is None:
        open_value = flag("openVsCodeByDefault")
    env_globs = text("envGlobs")

    return PartialConfig(
        base=text("base"),
        branch_prefix=text("branchPrefix"),
        dir=text("dir"),
        copy_env=flag("copyEnv"),
        env_globs=_non_empty_globs(parse_env_globs(env_globs)) if env_globs else None,
        env_scope=_enum_field(text("envScope"), parse_env_scope, source, "envScope"),
        overwrite_env=flag("overwriteEnv"),
        template=flag("template"),
        template_file=text("templateFile"),
        template_type=_enum_field(text("templateType"), normalize_template_type, source, "templateType"),
        overwrite_template=flag("overwriteTemplate"),
        fetch=flag("fetch"),
        open=open_value,
    )


_JSON_KEYS = frozenset(
    {
        "base",
        "branchPrefix",
        "dir",
        "copyEnv",
        "envGlobs",
        "envScope",
        "overwriteEnv",
        "template",
        "templateFile",
        "templateType",
        "overwriteTemplate",
        "fetch",
        "open",
        "openVsCodeByDefault",
    }
)


def parse_json_config(raw: Any, source: str) -> PartialConfig:
    """Validate a decoded JSON config object. Wrong types are hard errors."""

    if not isinstance(raw, dict):
        raise ConfigError(f"{source} must contain a JSON object.")
    unknown = sorted(set(raw) - _JSON_KEYS)
    if unknown:
        logger.debug("Ignoring unknown keys in %s: %s", source, ", ".join(unknown))

    open_value = _read_bool(raw, "open", source)
    if open_value is None:
        open_value = _read_bool(raw, "openVsCodeByDefault", source)

    return PartialConfig(
        base=_read_str(raw, "base", source),
        branch_prefix=_read_str(raw, "branchPrefix", source),
        dir=_read_str(raw, "dir", source),
        copy_env=_read_bool(raw, "copyEnv", source),
        env_globs=_read_globs(raw, source),
        env_scope=_enum_field(_read_str(raw, "envScope", source), parse_env_scope, source, "envScope"),
        overwrite_env=_read_bool(raw, "overwriteEnv", source),
        template=_read_bool(raw, "template", source),
        template_file=_read_str(raw, "templateFile", source),
        template_type=_enum_field(
            _read_str(raw, "templateType", source), normalize_template_type, source, "templateType"
        ),
        overwrite_template=_read_bool(raw, "overwriteTemplate", source),
        fetch=_read_bool(raw, "fetch", source),
        open=open_value,
    )


def read_json_config(path: Path) -> PartialConfig:
    if not path.is_file():
        return PartialConfig()
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Unable to read {path}: {exc.strerror or exc}") from exc
    return parse_json_config(raw, str(path))


def read_git_config_layer(repo_root: Path, scope: Literal["global", "local"]) -> PartialConfig:
    entries = git.read_config_namespace(repo_root, scope, GIT_CONFIG_NAMESPACE)
    return parse_git_config_map(entries, source=f"git config ({scope})")


def load_config_layers(repo_root: Path) -> list[PartialConfig]:
    """Load the four persisted layers in priority order (lowest first)."""

    return [
        read_git_config_layer(repo_root, "global"),
        read_json_config(global_config_path()),
        read_git_config_layer(repo_root, "local"),
        read_json_config(repo_root / REPO_CONFIG_FILENAME),
    ]


def resolve_add_config(repo_root: Path, cli_overrides: PartialConfig | None = None) -> EffectiveConfig:
    layers = load_config_layers(repo_root)
    resolved = merge_config_layers(ADD_DEFAULTS, *layers, cli_overrides or PartialConfig())
    if resolved.base == CURRENT_BRANCH_BASE_SENTINEL:
        resolved = replace(resolved, base=resolve_current_branch_base(repo_root))
    return resolved


def resolve_current_branch_base(repo_root: Path) -> str:
    branch = git.current_branch(repo_root)
    if not branch:
        raise ConfigError(
            "Cannot determine default base branch because HEAD is detached. Pass --base <ref> explicitly."
        )
    return branch


def resolve_remote_name(repo_root: Path, base_ref: str) -> str:
    """Use the base ref's leading segment when it names a configured remote."""

    head, sep, _ = base_ref.partition("/")
    if sep and head in git.list_remotes(repo_root):
        return head
    return DEFAULT_REMOTE


def resolve_rm_config(
    repo_root: Path,
    *,
    dir: str | None = None,
    force_delete: bool | None = None,
) -> RmConfig:
    add_config = _persisted_config(repo_root)
    return RmConfig(
        dir=_first_defined(dir, add_config.dir),
        force_delete=_first_defined(force_delete, False),
    )


def resolve_list_config(
    repo_root: Path,
    *,
    branch_prefix: str | None = None,
    pretty: bool | None = None,
) -> ListConfig:
    add_config = _persisted_config(repo_root)
    return ListConfig(
        branch_prefix=normalize_branch_prefix(_first_defined(branch_prefix, add_config.branch_prefix)),
        pretty=_first_defined(pretty, False),
    )


def resolve_open_config(
    repo_root: Path,
    *,
    dir: str | None = None,
    branch_prefix: str | None = None,
    open: bool | None = None,
) -> OpenConfig:
    add_config = _persisted_config(repo_root)
    return OpenConfig(
        dir=_first_defined(dir, add_config.dir),
        branch_prefix=_first_defined(branch_prefix, add_config.branch_prefix),
        open=_first_defined(open, True),
    )


def resolve_prompt_config(
    repo_root: Path,
    *,
    dir: str | None = None,
    branch_prefix: str | None = None,
) -> PromptConfig:
    add_config = _persisted_config(repo_root)
    return PromptConfig(
        dir=_first_defined(dir, add_config.dir),
        branch_prefix=_first_defined(branch_prefix, add_config.branch_prefix),
    )


def resolve_finish_config(
    repo_root: Path,
    *,
    dir: str | None = None,
    branch_prefix: str | None = None,
    force_delete: bool | None = None,
    cleanup: bool | None = None,
    delete_branch: bool | None = None,
) -> FinishConfig:
    add_config = _persisted_config(repo_root)
    resolved_cleanup = _first_defined(cleanup, True)
    return FinishConfig(
        dir=_first_defined(dir, add_config.dir),
        branch_prefix=_first_defined(branch_prefix, add_config.branch_prefix),
        force_delete=_first_defined(force_delete, True),
        cleanup=resolved_cleanup,
        delete_branch=_first_defined(delete_branch, resolved_cleanup),
    )


def _persisted_config(repo_root: Path) -> EffectiveConfig:
    # Commands other than `add` never need the base ref, so skip resolving it.
    return merge_config_layers(ADD_DEFAULTS, *load_config_layers(repo_root))


def _first_defined(value: T | None, fallback: T) -> T:
    return fallback if value is None else value


def _read_str(raw: Mapping[str, Any], key: str, source: str) -> str | None:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(f'{source}: "{key}" must be a string.')
    return value.strip() or None


def _read_bool(raw: Mapping[str, Any], key: str, source: str) -> bool | None:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, bool):
        raise ConfigError(f'{source}: "{key}" must be a boolean.')
    return value


def _read_globs(raw: Mapping[str, Any], source: str) -> tuple[str, ...] | None:
    value = raw.get("envGlobs")
    if value is None:
        return None
    if isinstance(value, str):
        return _non_empty_globs(parse_env_globs(value))
    if isinstance(value, list):
        if not all(isinstance(item, str) for item in value):
            raise ConfigError(f'{source}: "envGlobs" array entries must all be strings.')
        return _non_empty_globs(parse_env_globs(value))
    raise ConfigError(f'{source}: "envGlobs" must be a string or string array.')


def _non_empty_globs(globs: list[str]) -> tuple[str, ...] | None:
    return tuple(globs) if globs else None


def _enum_field(
    value: str | None,
    parser: Callable[[str], T],
    source: str,
    key: str,
) -> T | None:
    if value is None:
        return None
    try:
        return parser(value)
    except ValidationError as exc:
        raise ConfigError(f'{source}: "{key}": {exc}') from exc


__all__ = [
    "CURRENT_BRANCH_BASE_SENTINEL",
    "REPO_CONFIG_FILENAME",
    "ADD_DEFAULTS",
    "PartialConfig",
    "EffectiveConfig",
    "RmConfig",
    "ListConfig",
    "OpenConfig",
    "PromptConfig",
    "FinishConfig",
    "global_config_path",
    "merge_config_layers",
    "parse_boolean_like",
    "parse_git_config_map",
    "parse_json_config",
    "read_json_config",
    "load_config_layers",
    "resolve_add_config",
    "resolve_current_branch_base",
    "resolve_remote_name",
    "resolve_rm_config",
    "resolve_list_config",
    "resolve_open_config",
    "resolve_prompt_config",
    "resolve_finish_config",
]
