"""Configuration utilities for nodedoc.

This module loads application configuration with the following rules:
- Primary source: `nodedoc_config.json` at the project root.
- Overrides: environment variables (a local `.env` is loaded first without
  overriding the real environment), then optional text files under `config/`.
- Validation: Pydantic models enforce required fields and value constraints.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import List, Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator

from nodedoc.logging_setup import LEVELS


CONFIG_DIR = Path("config")
ROOT_CONFIG = Path("nodedoc_config.json")
logger = logging.getLogger(__name__)


def _read_config_file(rel_path: str) -> Optional[str]:
    path = CONFIG_DIR / rel_path
    try:
        if path.exists():
            return path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        # Recoverable: log and ignore unreadable override
        logger.warning("Failed to read override %s: %s", path, e)
        return None
    return None


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(key, default)


class LibraryConfig(BaseModel):
    root: Path
    create_on_append: bool = Field(default=True)
    rank_width: int = Field(default=6, ge=1, le=20)
    process_locks: bool = Field(default=True)
    fsync: bool = Field(default=True)

    @field_validator("root")
    @classmethod
    def root_must_be_directory(cls, v: Path) -> Path:
        resolved = Path(v).expanduser().resolve()
        if not resolved.is_dir():
            raise ValueError(f"library.root {str(v)!r} is not an existing directory")
        return resolved


class ServerConfig(BaseModel):
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8080, ge=0, le=65535)


class CorsConfig(BaseModel):
    origins: List[str] = Field(default_factory=lambda: ["*"])


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")

    @field_validator("level")
    @classmethod
    def level_must_be_known(cls, v: str) -> str:
        name = str(v).strip().upper()
        if name not in LEVELS:
            raise ValueError(f"logging.level must be one of {', '.join(LEVELS)}")
        return name


class AppConfig(BaseModel):
    library: LibraryConfig
    server: ServerConfig = Field(default_factory=ServerConfig)
    cors: CorsConfig = Field(default_factory=CorsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _read_json_file(path: Path) -> dict:
    try:
        if path.exists():
            return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error("Failed to read JSON config %s: %s", path, e)
    return {}


def load_config() -> AppConfig:
    """Load configuration with validation.

    Precedence (highest first):
    1) Environment variables
    2) Text files in `config/` (optional)
    3) nodedoc_config.json at project root (primary base)
    4) Safe defaults for development
    """

    load_dotenv(find_dotenv(usecwd=True), override=False)
    base = _read_json_file(ROOT_CONFIG)

    # Helpers to fetch from base JSON
    def _base(path: str, default: Optional[str] = None) -> Optional[str]:
        cur: object = base
        for key in path.split("."):
            if not isinstance(cur, dict) or key not in cur:
                return default
            cur = cur[key]
        if isinstance(cur, list):
            return ",".join(str(item) for item in cur)
        if isinstance(cur, bool):
            return "true" if cur else "false"
        return str(cur) if cur is not None else default

    # Library; without LIBRARY the working directory is served
    root = (
        _env("LIBRARY")
        or _read_config_file("library.root")
        or _base("library.root")
        or _env("PWD")
        or os.getcwd()
    )
    create_text = _env("NODEDOC_CREATE_ON_APPEND") or _read_config_file("library.create_on_append") or _base("library.create_on_append", "true")
    width_text = _env("NODEDOC_RANK_WIDTH") or _read_config_file("library.rank_width") or _base("library.rank_width", "6")
    locks_text = _env("NODEDOC_PROCESS_LOCKS") or _read_config_file("library.process_locks") or _base("library.process_locks", "true")
    fsync_text = _env("NODEDOC_FSYNC") or _read_config_file("library.fsync") or _base("library.fsync", "true")

    # Server
    host = _env("NODEDOC_HOST") or _read_config_file("server.host") or _base("server.host", "127.0.0.1")
    port_text = _env("NODEDOC_PORT") or _read_config_file("server.port") or _base("server.port", "8080")

    # CORS
    origins_text = _env("NODEDOC_CORS_ORIGINS") or _read_config_file("cors.origins") or _base("cors.origins", "*")
    origins = [o.strip() for o in str(origins_text).split(",") if o.strip()]

    # Logging
    level_text = _env("NODEDOC_LOG_LEVEL") or _read_config_file("logging.level") or _base("logging.level", "INFO")

    # Strings are coerced (and rejected when malformed) by the models
    try:
        cfg = AppConfig(
            library=LibraryConfig(
                root=Path(str(root)),
                create_on_append=str(create_text).strip().lower(),
                rank_width=str(width_text).strip(),
                process_locks=str(locks_text).strip().lower(),
                fsync=str(fsync_text).strip().lower(),
            ),
            server=ServerConfig(host=str(host).strip(), port=str(port_text).strip()),
            cors=CorsConfig(origins=origins or ["*"]),
            logging=LoggingConfig(level=str(level_text)),
        )
        return cfg
    except PydanticValidationError as e:
        logger.error("Invalid application configuration: %s", e)
        raise


__all__ = [
    "AppConfig",
    "LibraryConfig",
    "ServerConfig",
    "CorsConfig",
    "LoggingConfig",
    "load_config",
]
