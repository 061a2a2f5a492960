"""Configuration management for the GridFS CLI."""

import json
import os
import shutil
import tempfile
from pathlib import Path

from common.constants import DEFAULT_ADDRESS, DEFAULT_BUCKET, DEFAULT_CHUNK_SIZE_BYTES, DEFAULT_PORT
from common.logging_config import get_logger

logger = get_logger(__name__)


class Config:
    """Manages CLI configuration stored in JSON file."""

    DEFAULT_CONFIG = {
        "server_host": os.environ.get("GRIDFS_SERVER_HOST", "localhost"),
        "server_port": int(os.environ.get("GRIDFS_SERVER_PORT", str(DEFAULT_PORT))),
        "address": os.environ.get("GRIDFS_ADDRESS", DEFAULT_ADDRESS),
        "bucket": DEFAULT_BUCKET,
        "chunk_size": DEFAULT_CHUNK_SIZE_BYTES,
        "timeout": 30,
        "max_retries": 3,
        "retry_backoff_multiplier": 2,
    }

    def __init__(self, config_path: Path):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config JSON file (typically ~/.gridfs/config.json)
        """
        self.config_path = config_path
        self.data = self._load()

    def _load(self) -> dict:
        """
        Load configuration from file, creating defaults if necessary.

        Returns:
            Configuration dictionary
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            self.config_path = Path(tempfile.gettempdir()) / '.gridfs' / 'config.json'
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = json.load(f)
                config = self.DEFAULT_CONFIG.copy()
                config.update(data)
                return config
            except (json.JSONDecodeError, IOError) as e:
                logger.warning(f"Unreadable config {self.config_path}, using defaults: {e}")
                backup_path = self.config_path.with_suffix('.json.bak')
                try:
                    shutil.copy(self.config_path, backup_path)
                except OSError:
                    logger.warning(f"Could not back up {self.config_path}")
                return self.DEFAULT_CONFIG.copy()
        else:
            config = self.DEFAULT_CONFIG.copy()
            try:
                with open(self.config_path, 'w') as f:
                    json.dump(config, f, indent=2)
            except IOError as e:
                logger.warning(f"Could not write default config: {e}")
            return config

    def save(self) -> None:
        """Save current configuration to file."""
        try:
            with open(self.config_path, 'w') as f:
                json.dump(self.data, f, indent=2)
        except IOError as e:
            logger.warning(f"Could not save config: {e}")

    def get_target(self) -> str:
        """
        Get the gRPC target of the bus server.

        Returns:
            Target string (e.g., "localhost:50061")
        """
        host = self.data.get('server_host', 'localhost')
        port = self.data.get('server_port', DEFAULT_PORT)
        return f"{host}:{port}"

    def get_address(self) -> str:
        """Bus address the server listens on."""
        return self.data.get('address', DEFAULT_ADDRESS)

    def get_bucket(self) -> str:
        return self.data.get('bucket', DEFAULT_BUCKET)

    def set_bucket(self, bucket: str) -> None:
        """
        Set the default bucket and save to file.

        Args:
            bucket: Bucket name
        """
        self.data['bucket'] = bucket
        self.save()

    def get_chunk_size(self) -> int:
        return self.data.get('chunk_size', DEFAULT_CHUNK_SIZE_BYTES)

    def get_timeout(self) -> int:
        """
        Get request timeout in seconds.

        Returns:
            Timeout value in seconds
        """
        return self.data.get('timeout', 30)

    def get_retry_config(self) -> dict:
        """
        Get retry configuration.

        Returns:
            Dictionary with 'max_retries' and 'retry_backoff_multiplier'
        """
        return {
            'max_retries': self.data.get('max_retries', 3),
            'retry_backoff_multiplier': self.data.get('retry_backoff_multiplier', 2),
        }
