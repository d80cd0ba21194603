from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, cast

import yaml

from .status import StatusEntry, StatusTable, entries_from_config, entries_from_tasks_plugin
from .tokens import Scope

DEFAULT_TASK_TOKEN = '#task'
DEFAULT_HIDDEN_TOKEN = '#hidden'
DEFAULT_API_URL = 'https://api.github.com'


class ConfigError(RuntimeError):
    pass


@dataclass
class DocumentSettings:
    task_token: str = DEFAULT_TASK_TOKEN
    hidden_token: str = DEFAULT_HIDDEN_TOKEN
    feature_level: int = 3


@dataclass
class SyncConfig:
    version: int
    document_file: Path
    document: DocumentSettings
    github_repo: str | None
    github_api_url: str
    scope: Scope
    status_entries: list[StatusEntry] = field(default_factory=list)
    # Behavior
    task_id_length: int = 6
    assume_single_product: bool = False
    ensure_feature_labels: bool = False
    # Output
    summary_json: str | None = None
    # Logging configuration
    logging_json_enabled: bool = False
    logging_level: str = 'INFO'

    def status_table(self) -> StatusTable:
        return StatusTable(self.status_entries)


def _resolve_env_var(value: Any) -> Any:
    """Resolve environment variable if value starts with $."""
    if isinstance(value, str) and value.startswith('$'):
        return os.getenv(value[1:], value)  # Fallback to original if not found
    return value


def split_scope(entries: list[str], repo: str | None) -> Scope:
    """Sort ``#Token`` / ``#Token/repo`` entries into product and foreign tags.

    A bare token belongs to the synced repository; ``#Token/repo`` belongs to
    it only when ``repo`` names the configured repository.
    """
    repo_name = (repo or '').split('/')[-1].strip()
    scope = Scope()
    for raw in entries:
        words = [w.strip() for w in str(raw).strip().split('/')]
        if not words[0]:
            continue
        if len(words) == 1 or words[-1] == repo_name:
            scope.products.append(words[0])
        else:
            scope.foreign.append(words[0])
    return scope


def _as_list(value: Any, what: str) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    raise ConfigError(f'{what} must be a list')


def load_config(path: str | Path) -> SyncConfig:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f'Configuration file not found: {p}')
    try:
        raw_any = yaml.safe_load(p.read_text(encoding='utf-8')) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f'Invalid YAML in {p}: {exc}') from exc
    if not isinstance(raw_any, dict):
        raise ConfigError(f'Configuration in {p} must be a mapping')
    raw = cast(dict[str, Any], raw_any)
    doc = cast(dict[str, Any], raw.get('document', {}) or {})
    gh = cast(dict[str, Any], raw.get('github', {}) or {})
    scope_raw = cast(dict[str, Any], raw.get('scope', {}) or {})
    status_raw = cast(dict[str, Any], raw.get('status', {}) or {})
    behavior = cast(dict[str, Any], raw.get('behavior', {}) or {})
    out = cast(dict[str, Any], raw.get('output', {}) or {})
    logging_config = cast(dict[str, Any], raw.get('logging', {}) or {})

    repo = _resolve_env_var(gh.get('repo'))
    scope = split_scope([str(e) for e in _as_list(scope_raw.get('products'), 'scope.products')], repo)
    scope.foreign.extend(
        str(e).strip() for e in _as_list(scope_raw.get('foreign'), 'scope.foreign') if str(e).strip()
    )

    try:
        status_entries = entries_from_config(_as_list(status_raw.get('entries'), 'status.entries'))
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc
    plugin_file = status_raw.get('tasks_plugin_data')
    if plugin_file:
        status_entries.extend(entries_from_tasks_plugin(p.parent / str(plugin_file)))

    feature_level = int(doc.get('feature_level', 3))
    if not 1 <= feature_level <= 5:
        raise ConfigError('document.feature_level must be between 1 and 5')

    return SyncConfig(
        version=int(raw.get('version', 1)),
        document_file=p.parent / doc.get('file', 'Tasks.md'),
        document=DocumentSettings(
            task_token=doc.get('task_token', DEFAULT_TASK_TOKEN),
            hidden_token=doc.get('hidden_token', DEFAULT_HIDDEN_TOKEN),
            feature_level=feature_level,
        ),
        github_repo=repo,
        github_api_url=_resolve_env_var(gh.get('api_url', DEFAULT_API_URL)),
        scope=scope,
        status_entries=status_entries,
        task_id_length=int(behavior.get('task_id_length', 6)),
        assume_single_product=bool(behavior.get('assume_single_product', False)),
        ensure_feature_labels=bool(behavior.get('ensure_feature_labels', False)),
        summary_json=out.get('summary_json'),
        # Logging configuration
        logging_json_enabled=bool(logging_config.get('json_enabled', False)),
        logging_level=logging_config.get('level', 'INFO'),
    )


__all__ = ['ConfigError', 'DocumentSettings', 'SyncConfig', 'load_config', 'split_scope']
