"""Configuration loading and deterministic resolution order."""

from __future__ import annotations

import logging
import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from skillidx.index.tokenizer import PREFERENCE_ASCII, PREFERENCES

logger = logging.getLogger(__name__)

TOKENIZER_ENV_VAR = "SKILLIDX_TOKENIZER"
HOME_ENV_VAR = "SKILLIDX_HOME"
CONFIG_DIR_NAME = ".skillidx"
CONFIG_FILE_NAME = "config.toml"
SUPPORTED_CONFIG_VERSION = 1


@dataclass(slots=True, frozen=True)
class SearchConfig:
    """Search indexing settings."""

    tokenizer: str = PREFERENCE_ASCII


@dataclass(slots=True, frozen=True)
class EngineConfig:
    """Fully resolved engine configuration."""

    search: SearchConfig

    def to_public_dict(self) -> dict[str, object]:
        """Return serializable config snapshot."""
        return {"search": {"tokenizer": self.search.tokenizer}}


def default_config() -> EngineConfig:
    """Build the configuration used when nothing overrides it."""
    return EngineConfig(search=SearchConfig())


def parse_tokenizer(value: object) -> str | None:
    """Return a recognized tokenizer preference, matching case-insensitively."""
    if not isinstance(value, str):
        return None
    lowered = value.strip().lower()
    if lowered in PREFERENCES:
        return lowered
    return None


def load_config_file(path: Path) -> dict[str, object]:
    """Load and validate one TOML config file."""
    with path.open("rb") as handle:
        payload = tomllib.load(handle)

    version = payload.get("version")
    if version is not None:
        if isinstance(version, bool) or not isinstance(version, int) or version < 1:
            raise ValueError(f"Config field 'version' must be a positive integer in {path}.")
        if version > SUPPORTED_CONFIG_VERSION:
            logger.warning(
                "config version %d in %s is newer than supported (%d); "
                "using recognized fields only",
                version,
                path,
                SUPPORTED_CONFIG_VERSION,
            )

    search = payload.get("search", {})
    if not isinstance(search, dict):
        raise ValueError(f"Config section 'search' must be a table in {path}.")
    if "tokenizer" in search and parse_tokenizer(search["tokenizer"]) is None:
        raise ValueError(f"Config field 'search.tokenizer' must be 'ascii' or 'cjk' in {path}.")
    return payload


def _file_tokenizer(path: Path) -> str | None:
    try:
        payload = load_config_file(path)
    except (OSError, ValueError) as error:
        logger.warning("ignoring config file %s: %s", path, error)
        return None
    search = payload.get("search", {})
    if not isinstance(search, dict):
        return None
    return parse_tokenizer(search.get("tokenizer"))


def find_project_config(start: Path) -> Path | None:
    """Return the nearest project config walking up from ``start``."""
    current = Path(start).resolve()
    for directory in (current, *current.parents):
        candidate = directory / CONFIG_DIR_NAME / CONFIG_FILE_NAME
        if candidate.is_file():
            return candidate
    return None


def global_config_dir(environ: Mapping[str, str] | None = None) -> Path:
    """Return ``<SKILLIDX_HOME or ~>/.skillidx``."""
    env = os.environ if environ is None else environ
    home = env.get(HOME_ENV_VAR)
    if home:
        return Path(home) / CONFIG_DIR_NAME
    return Path.home() / CONFIG_DIR_NAME


def resolve_tokenizer_preference(
    cwd: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> str:
    """Resolve tokenizer preference: env, project config, global config, default."""
    env = os.environ if environ is None else environ

    raw = env.get(TOKENIZER_ENV_VAR)
    if raw is not None:
        preference = parse_tokenizer(raw)
        if preference is not None:
            return preference
        logger.warning("ignoring invalid %s value '%s'", TOKENIZER_ENV_VAR, raw)

    project_config = find_project_config(cwd or Path.cwd())
    if project_config is not None:
        preference = _file_tokenizer(project_config)
        if preference is not None:
            return preference

    global_config = global_config_dir(env) / CONFIG_FILE_NAME
    if global_config.is_file():
        preference = _file_tokenizer(global_config)
        if preference is not None:
            return preference

    return PREFERENCE_ASCII


def load_effective_config(
    cwd: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> EngineConfig:
    """Load effective config using order env -> project file -> global file -> defaults."""
    return EngineConfig(
        search=SearchConfig(tokenizer=resolve_tokenizer_preference(cwd, environ)),
    )
