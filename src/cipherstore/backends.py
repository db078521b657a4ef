"""Storage backends for EncryptedStore.

A backend decides where the single connection of a store points: a SQLite
file (optionally SQLCipher-encrypted) or a private in-memory database.
Everything above the engine is shared, so both backends behave identically
apart from persistence.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine
from sqlalchemy.pool import StaticPool

from cipherstore.config import StoreConfig
from cipherstore.log import mask_url

logger = logging.getLogger(__name__)


class Backend(ABC):
    """Connection strategy for a store."""

    mocked: bool = False

    def __init__(self, config: StoreConfig):
        self.config = config

    @property
    @abstractmethod
    def location(self) -> str:
        """Human-readable location, used in logs and error context."""

    @abstractmethod
    def url(self) -> URL:
        """Engine URL for this backend."""

    def create_engine(self) -> Engine:
        """Create an engine holding exactly one connection."""
        url = self.url()
        logger.debug(f"Engine URL: {mask_url(url.render_as_string(hide_password=False))}")
        return create_engine(
            url,
            echo=self.config.echo_sql,
            poolclass=StaticPool,
            connect_args={
                "check_same_thread": False,
                "timeout": self.config.busy_timeout,
            },
        )


class FileBackend(Backend):
    """SQLite file, encrypted with SQLCipher when a passphrase is given."""

    def __init__(self, path: Path, passphrase: str | None, config: StoreConfig):
        super().__init__(config)
        self.path = path
        self.passphrase = passphrase or None

    @property
    def location(self) -> str:
        return str(self.path)

    @property
    def encrypted(self) -> bool:
        return self.passphrase is not None

    def url(self) -> URL:
        if self.passphrase is None:
            return URL.create("sqlite", database=str(self.path))
        # The dialect issues pragma key="<password>" verbatim
        return URL.create(
            "sqlite+pysqlcipher",
            password=self.passphrase.replace('"', '""'),
            database=str(self.path),
        )

    def create_engine(self) -> Engine:
        if self.config.create_dirs:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        engine = super().create_engine()
        logger.info(
            f"Opening {'encrypted ' if self.encrypted else ''}store file: {self.path}"
        )
        return engine


class MemoryBackend(Backend):
    """Private in-memory database; discarded when the store closes."""

    mocked = True

    def __init__(self, name: str, config: StoreConfig, passphrase: str | None = None):
        super().__init__(config)
        self.name = name
        if passphrase:
            logger.warning(f"Passphrase ignored for in-memory store '{name}'")

    @property
    def location(self) -> str:
        return f":memory:{self.name}"

    def url(self) -> URL:
        return URL.create("sqlite")
