"""Functions for reading and validating configuration files."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Type

try:  # Python 3.11+
    import tomllib
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore

from pydantic import BaseModel, ValidationError

from ..exceptions import ConfigError
from .models import ConfigBundle, HerbsConfig, LedgerConfig, RulesConfig, ZonesConfig


ENV_LEDGER_MODE = "HERBTRACE_LEDGER_MODE"
ENV_GATEWAY_URL = "HERBTRACE_GATEWAY_URL"


class ConfigFiles:
    """Canonical configuration filenames."""

    ZONES = "zones.toml"
    HERBS = "herbs.toml"
    LEDGER = "ledger.toml"
    RULES = "rules.toml"


def load_config_bundle(root: Path) -> ConfigBundle:
    """Load all configuration files from *root* directory.

    ``ledger.toml`` and ``rules.toml`` are optional; their defaults apply when
    absent. Environment overrides for the ledger mode and gateway URL are
    applied before validation.
    """

    root = Path(root)
    zones = _load_toml(root / ConfigFiles.ZONES, ZonesConfig)
    herbs = _load_toml(root / ConfigFiles.HERBS, HerbsConfig)
    ledger = _load_toml(
        root / ConfigFiles.LEDGER, LedgerConfig, optional=True, overrides=_ledger_env()
    )
    rules = _load_toml(root / ConfigFiles.RULES, RulesConfig, optional=True)
    return ConfigBundle(zones=zones, herbs=herbs, ledger=ledger, rules=rules)


def _ledger_env() -> Dict[str, str]:
    overrides: Dict[str, str] = {}
    mode = os.environ.get(ENV_LEDGER_MODE)
    if mode:
        overrides["mode"] = mode
    url = os.environ.get(ENV_GATEWAY_URL)
    if url:
        overrides["gateway_url"] = url
    return overrides


def _load_toml(
    path: Path,
    model: Type[BaseModel],
    *,
    optional: bool = False,
    overrides: Dict[str, Any] | None = None,
) -> Any:
    try:
        with path.open("rb") as fh:
            data = tomllib.load(fh)
    except FileNotFoundError as exc:
        if not optional:
            raise ConfigError(path, "file not found") from exc
        data = {}
    except (tomllib.TOMLDecodeError, OSError) as exc:
        raise ConfigError(path, f"failed to read TOML: {exc}") from exc

    if overrides:
        data.update(overrides)

    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(path, _format_validation_errors(exc)) from exc


def _format_validation_errors(error: ValidationError) -> str:
    messages = []
    for err in error.errors(include_context=False):
        loc = _format_location(err.get("loc", ()))
        msg = err.get("msg", "invalid value")
        if loc:
            messages.append(f"{loc}: {msg}")
        else:
            messages.append(msg)
    return "; ".join(messages)


def _format_location(loc: tuple[Any, ...]) -> str:
    if not loc:
        return ""

    parts: list[str] = []
    for entry in loc:
        if isinstance(entry, int):
            if not parts:
                parts.append(f"[{entry}]")
            else:
                parts[-1] = parts[-1] + f"[{entry}]"
        else:
            parts.append(str(entry))
    return ".".join(parts)
