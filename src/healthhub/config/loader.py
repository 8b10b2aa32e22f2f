"""Load the hub's ``.healthhub.yaml``.

Lookup order: an explicit path, then ``$HEALTHHUB_CONFIG``, then the first
``.healthhub.yaml`` found walking up from the working directory. String values
may reference the environment as ``${NAME}`` or ``${NAME:-fallback}``; an unset
variable without a fallback is left as written so validation can point at it.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from healthhub.config.models import HubConfig

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".healthhub.yaml"
CONFIG_ENV_VAR = "HEALTHHUB_CONFIG"

_ENV_REF = re.compile(r"\$\{\s*(?P<name>[A-Za-z_][A-Za-z0-9_]*)\s*(?::-(?P<fallback>[^}]*))?\}")


def expand_env(value: str) -> str:
    """Substitute ``${NAME}`` / ``${NAME:-fallback}`` references in *value*."""

    def _substitute(match: re.Match[str]) -> str:
        fallback = match.group("fallback")
        resolved = os.environ.get(match.group("name"))
        if resolved is not None:
            return resolved
        return match.group(0) if fallback is None else fallback

    return _ENV_REF.sub(_substitute, value)


def _expand_tree(node: Any) -> Any:
    if isinstance(node, str):
        return expand_env(node)
    if isinstance(node, dict):
        return {key: _expand_tree(item) for key, item in node.items()}
    if isinstance(node, list):
        return [_expand_tree(item) for item in node]
    return node


def _describe(exc: ValidationError) -> str:
    """One line per problem, e.g. ``services.1.endpoint: invalid endpoint ...``."""
    lines = []
    for error in exc.errors():
        where = ".".join(str(part) for part in error["loc"]) or "<root>"
        message = error["msg"].removeprefix("Value error, ")
        lines.append(f"{where}: {message}")
    return "; ".join(lines)


def find_config_file(start: Path | None = None) -> Path | None:
    """Locate the hub config: ``$HEALTHHUB_CONFIG`` first, then walk up from *start*."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override)
    current = (start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def load_config(path: Path | None = None) -> HubConfig:
    """Parse, expand and validate the hub config.

    Raises:
        FileNotFoundError: no config file could be located.
        yaml.YAMLError: the file is not valid YAML.
        ValueError: the document is not a mapping, or fails validation
            (bad poller tunables, malformed endpoints, duplicate service ids).
    """
    config_path = path or find_config_file()
    if config_path is None or not config_path.exists():
        raise FileNotFoundError(
            f"Could not find {CONFIG_FILENAME}. Create one, set ${CONFIG_ENV_VAR}, or pass --path."
        )

    raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError(
            f"Invalid configuration in {config_path}: expected a mapping at the top level, "
            f"got {type(raw).__name__}"
        )

    try:
        return HubConfig.model_validate(_expand_tree(raw))
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration in {config_path}: {_describe(exc)}") from exc


def load_config_or_default(path: Path | None = None) -> HubConfig:
    """Like :func:`load_config`, but an absent or broken file yields defaults.

    A missing file is normal for an ad-hoc hub; a broken one is logged so a
    typo does not silently turn into an empty directory.
    """
    try:
        return load_config(path)
    except FileNotFoundError:
        logger.debug("No %s found; using built-in defaults", CONFIG_FILENAME)
    except (ValueError, yaml.YAMLError) as exc:
        logger.warning("Ignoring unusable configuration: %s", exc)
    return HubConfig()
