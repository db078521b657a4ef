"""Configuration for cipherstore.

Environment Variables:
    - CIPHERSTORE_STORAGE_DIR: Base directory for relative store paths
      (default: current working directory)
    - CIPHERSTORE_ECHO_SQL: Echo every SQL statement through SQLAlchemy
    - CIPHERSTORE_LOG_LEVEL: Level used by setup_logging (default: WARNING)
    - CIPHERSTORE_CREATE_DIRS: Create parent directories for new store files
    - CIPHERSTORE_BUSY_TIMEOUT: Seconds to wait on a locked file (default: 5)

Passphrases are never read from configuration; callers pass them to
EncryptedStore.open explicitly.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreConfig(BaseSettings):
    """cipherstore configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CIPHERSTORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    storage_dir: Path = Field(
        default_factory=Path.cwd,
        description="Base directory for relative store paths",
    )
    echo_sql: bool = Field(
        default=False,
        description="Echo SQL statements (SQLAlchemy engine echo)",
    )
    log_level: str = Field(
        default="WARNING",
        description="Logging level for setup_logging",
    )
    busy_timeout: float = Field(
        default=5.0,
        description="Seconds to wait on a locked database file before failing",
    )
    create_dirs: bool = Field(
        default=True,
        description="Create parent directories of file-backed stores",
    )

    def resolve_path(self, path: str | Path) -> Path:
        """Resolve a store path; relative paths are placed under storage_dir."""
        path = Path(path).expanduser()
        if path.is_absolute():
            return path
        return self.storage_dir / path
