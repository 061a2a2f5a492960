"""Server configuration: optional JSON file overridden by GRIDFS_* environment variables."""

import json
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import List, Optional

from common.constants import (
    DEFAULT_ADDRESS,
    DEFAULT_BUCKET,
    DEFAULT_DB_PATH,
    DEFAULT_HOST,
    DEFAULT_POOL_SIZE,
    DEFAULT_PORT,
)


@dataclass
class ServerConfig:
    """
    Settings consumed once at startup.
    """
    address: str = DEFAULT_ADDRESS
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    db_path: str = DEFAULT_DB_PATH
    pool_size: int = DEFAULT_POOL_SIZE
    buckets: List[str] = field(default_factory=lambda: [DEFAULT_BUCKET])
    log_level: str = "INFO"

    @property
    def listen_addr(self) -> str:
        return f"{self.host}:{self.port}"


_ENV_OVERRIDES = {
    "GRIDFS_ADDRESS": ("address", str),
    "GRIDFS_HOST": ("host", str),
    "GRIDFS_PORT": ("port", int),
    "GRIDFS_DB_PATH": ("db_path", str),
    "GRIDFS_POOL_SIZE": ("pool_size", int),
    "GRIDFS_BUCKETS": ("buckets", lambda v: [b.strip() for b in v.split(",") if b.strip()]),
    "LOG_LEVEL": ("log_level", str),
}


def load_config(path: Optional[Path] = None) -> ServerConfig:
    """
    Build the server configuration.

    Args:
        path: JSON config file. Defaults to $GRIDFS_CONFIG when set.
              Keys match ServerConfig fields; 'db_name' is accepted for db_path.

    Returns:
        ServerConfig with file values applied first, then environment overrides

    Raises:
        ValueError: If the file is not a JSON object or a value has the wrong type
    """
    config = ServerConfig()

    if path is None and os.getenv("GRIDFS_CONFIG"):
        path = Path(os.environ["GRIDFS_CONFIG"])

    if path is not None:
        with open(path, "r") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"config file {path} must contain a JSON object")
        if "db_name" in data and "db_path" not in data:
            data["db_path"] = data.pop("db_name")
        known = {f.name for f in fields(ServerConfig)}
        for key, value in data.items():
            if key in known:
                setattr(config, key, value)

    for env_name, (attr, convert) in _ENV_OVERRIDES.items():
        raw = os.getenv(env_name)
        if raw:
            setattr(config, attr, convert(raw))

    if not isinstance(config.port, int) or not isinstance(config.pool_size, int):
        raise ValueError("port and pool_size must be integers")

    return config
