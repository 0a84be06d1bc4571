"""Read and write ``config.json``.

The file on disk uses camelCase keys; the pydantic models use snake_case.
Keys under ``chats.overrides`` are conversation keys (``-100123:7``) and are
never case-converted. Files older than ``CONFIG_VERSION`` are upgraded in
place, with a timestamped backup of the previous file.
"""

from __future__ import annotations

import json
import os
import re
import shutil
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, TypeAlias

from loguru import logger

from personaforge.config.defaults import apply_missing_defaults
from personaforge.config.schema import Config

CONFIG_VERSION = 1

_VERBATIM_KEYS = {("chats", "overrides")}
_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")

Payload: TypeAlias = dict[str, Any]


def get_config_path() -> Path:
    from personaforge.utils.helpers import get_data_path

    return get_data_path() / "config.json"


def load_config(config_path: Path | None = None) -> Config:
    """Load the config file, upgrading it when it predates ``CONFIG_VERSION``.

    A missing or unreadable file yields ``Config()``, which still honours
    ``PERSONAFORGE_*`` environment variables.
    """
    path = config_path or get_config_path()
    if not path.exists():
        return Config()

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        payload, upgraded = upgrade_payload(raw)
        config = Config.model_validate(payload)
    except (json.JSONDecodeError, ValueError) as e:
        logger.warning("Ignoring unreadable config {}: {}", path, e)
        return Config()

    if upgraded:
        logger.info("Upgrading {} to config version {}", path, CONFIG_VERSION)
        _backup(path)
        _write_atomic(path, config)
    return config


def save_config(config: Config, config_path: Path | None = None) -> None:
    _write_atomic(config_path or get_config_path(), config)


# ── Versioning ───────────────────────────────────────────────────────


def _move_root_owner_ids(data: Payload) -> None:
    owners = data.pop("owner_ids", None)
    if not isinstance(owners, list):
        return
    identity = data.get("identity")
    if not isinstance(identity, dict):
        identity = data["identity"] = {}
    identity.setdefault("owner_ids", [str(owner) for owner in owners])


# Applied to files whose config_version is below the key.
_UPGRADES: dict[int, Callable[[Payload], None]] = {
    1: _move_root_owner_ids,
}


def upgrade_payload(raw: Any) -> tuple[Payload, bool]:
    """Return ``(snake_case payload, changed)`` for a raw camelCase document."""
    if not isinstance(raw, dict):
        raise ValueError("config root must be a JSON object")

    data: Payload = convert_keys(raw)
    version = int(data.get("config_version") or 0)
    for target, step in sorted(_UPGRADES.items()):
        if version < target:
            step(data)
    apply_missing_defaults(data)
    data["config_version"] = CONFIG_VERSION

    changed = _canonical(raw) != _canonical(convert_to_camel(data))
    return data, changed


def _canonical(data: Any) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"))


# ── Disk I/O ─────────────────────────────────────────────────────────


def _backup(path: Path) -> Path:
    stamp = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    target = path.with_name(f"{path.stem}.backup.{stamp}{path.suffix}")
    shutil.copy2(path, target)
    _restrict(target)
    return target


def _write_atomic(path: Path, config: Config) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    document = convert_to_camel(config.model_dump())
    scratch = path.with_name(f".{path.name}.{os.getpid()}.tmp")
    scratch.write_text(json.dumps(document, indent=2) + "\n", encoding="utf-8")
    _restrict(scratch)
    os.replace(scratch, path)
    _restrict(path)


def _restrict(path: Path) -> None:
    try:
        path.chmod(0o600)
    except OSError as e:
        logger.debug("Could not chmod {}: {}", path, e)


# ── Key case ─────────────────────────────────────────────────────────


def camel_to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def snake_to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def convert_keys(data: Any) -> Any:
    """camelCase → snake_case, recursively; conversation keys stay verbatim."""
    return _rekey(data, camel_to_snake, ())


def convert_to_camel(data: Any) -> Any:
    """snake_case → camelCase, recursively; conversation keys stay verbatim."""
    return _rekey(data, snake_to_camel, ())


def _rekey(data: Any, rename: Callable[[str], str], path: tuple[str, ...]) -> Any:
    if isinstance(data, list):
        return [_rekey(item, rename, path) for item in data]
    if not isinstance(data, dict):
        return data
    verbatim = path[-2:] in _VERBATIM_KEYS
    out: dict[str, Any] = {}
    for key, value in data.items():
        new_key = key if verbatim else rename(key)
        # Path is tracked in snake_case so lookups match either direction.
        out[new_key] = _rekey(value, rename, (*path, key if verbatim else camel_to_snake(key)))
    return out
