"""
Ledger settings loaded from YAML with environment overrides.

Precedence: explicit overrides > environment > YAML file > defaults.
This is the only place the proof backend name is resolved.
The identity secret is never read from settings.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from .config import DEFAULT_GROUP_ID, MAX_POST_CHARS
from .exceptions import ConfigurationError
from .factory import DEFAULT_BACKEND, check_backend_name

DEFAULT_STATE_DIR = ".anon-social"
EVENT_LOG_NAME = "events.log"
CONTENT_DIR_NAME = "content"

# (env var, settings field, cast)
_ENV_MAP = (
    ("ANON_SOCIAL_STATE_DIR", "state_dir", Path),
    ("ANON_SOCIAL_GROUP_ID", "group_id", int),
    ("ANON_SOCIAL_REJECT_DUPLICATE_MEMBERS", "reject_duplicate_members", None),
    ("ANON_SOCIAL_PROOF_BACKEND", "backend", str),
)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def _parse_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {value!r}")


@dataclass(frozen=True)
class LedgerSettings:
    """
    Attributes:
        group_id: Group the ledger owns
        backend: Registered proof backend name (see factory.BACKEND_REGISTRY)
        state_dir: Directory holding the event log and content store
        reject_duplicate_members: Refuse repeated joins of one commitment
        max_post_chars: Longest accepted post body
    """

    group_id: int = DEFAULT_GROUP_ID
    backend: str = DEFAULT_BACKEND
    state_dir: Path = Path(DEFAULT_STATE_DIR)
    reject_duplicate_members: bool = False
    max_post_chars: int = MAX_POST_CHARS

    @property
    def event_log_path(self) -> Path:
        return self.state_dir / EVENT_LOG_NAME

    @property
    def content_dir(self) -> Path:
        return self.state_dir / CONTENT_DIR_NAME

    def validate(self) -> "LedgerSettings":
        if not isinstance(self.group_id, int) or isinstance(self.group_id, bool):
            raise ConfigurationError("group_id must be an integer")
        if self.group_id < 0:
            raise ConfigurationError("group_id must be non-negative")
        if not isinstance(self.max_post_chars, int) or self.max_post_chars <= 0:
            raise ConfigurationError("max_post_chars must be a positive integer")
        if not isinstance(self.reject_duplicate_members, bool):
            raise ConfigurationError("reject_duplicate_members must be a boolean")
        try:
            check_backend_name(self.backend)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc
        return self


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    except OSError as exc:
        raise ConfigurationError(f"cannot read settings file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"invalid YAML in {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"settings file {path} must contain a mapping")
    return data


def _coerce(values: Dict[str, Any]) -> Dict[str, Any]:
    known = {f.name for f in fields(LedgerSettings)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigurationError(f"unknown settings keys: {', '.join(unknown)}")

    out = dict(values)
    if "state_dir" in out and out["state_dir"] is not None:
        out["state_dir"] = Path(out["state_dir"]).expanduser()
    if "reject_duplicate_members" in out:
        out["reject_duplicate_members"] = _parse_bool(
            "reject_duplicate_members", out["reject_duplicate_members"]
        )
    return out


def load_settings(
    path: Optional[Union[str, Path]] = None,
    *,
    env: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> LedgerSettings:
    """
    Build settings from an optional YAML file, the environment and overrides.

    Raises:
        ConfigurationError: On unreadable files, unknown keys or bad values
    """
    env = os.environ if env is None else env
    values: Dict[str, Any] = {}

    if path is not None:
        values.update(_read_yaml(Path(path)))

    for env_name, field_name, cast in _ENV_MAP:
        raw = env.get(env_name)
        if raw is None or (raw == "" and cast is not None):
            continue
        if cast is None:
            values[field_name] = _parse_bool(env_name, raw)
            continue
        try:
            values[field_name] = cast(raw)
        except ValueError as exc:
            raise ConfigurationError(f"invalid {env_name}: {raw!r}") from exc

    values.update({k: v for k, v in overrides.items() if v is not None})

    settings = replace(LedgerSettings(), **_coerce(values))
    return settings.validate()
