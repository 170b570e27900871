import os
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy import MetaData, create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from ..exceptions import ErrorCode, ServiceError, ValidationError
from ..utils.logger import get_logger

# Base class for all object store models
Base: Any = declarative_base()


class DatabaseConfig(BaseModel):
    db_type: str = "sqlite"
    database: str = ":memory:"
    url: Optional[str] = None
    host: str = ""
    port: str = "5432"
    username: str = ""
    password: str = ""
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    echo: bool = False
    development_mode: bool = False

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "DatabaseConfig":
        """Build a config from a SQLAlchemy connection string."""
        if not url:
            raise ValidationError(
                "Connection string is empty",
                error_code=ErrorCode.MISSING_REQUIRED,
                field="url",
            )
        db_type = "postgres" if url.startswith("postgres") else "sqlite"
        return cls(db_type=db_type, url=url, **kwargs)

    def get_connection_string(self) -> str:
        if self.url:
            return self.url
        if self.db_type.lower() == "postgres":
            if not all([self.host, self.database, self.username, self.password]):
                raise ValidationError(
                    "Missing required Postgres configuration parameters",
                    error_code=ErrorCode.MISSING_REQUIRED,
                    field="database_config",
                    value={"host": self.host, "database": self.database, "username": self.username},
                )
            return (
                f"postgresql+psycopg://{self.username}:{self.password}@"
                f"{self.host}:{self.port}/{self.database}"
            )
        elif self.db_type.lower() == "sqlite":
            return f"sqlite:///{self.database}"
        raise ValidationError(
            f"Unsupported database type: {self.db_type}",
            error_code=ErrorCode.INVALID_FORMAT,
            field="db_type",
            value=self.db_type,
        )

    @property
    def is_in_memory(self) -> bool:
        connection_string = self.get_connection_string()
        return connection_string in ("sqlite://", "sqlite:///:memory:")

    def __repr__(self) -> str:
        """String representation with masked password for security."""
        return (
            f"DatabaseConfig("
            f"db_type='{self.db_type}', "
            f"host='{self.host}', "
            f"database='{self.database}', "
            f"password='***')"
        )


class DatabaseManager:
    """
    Engine and session factory for one object store.

    Each storage backend owns its own manager; nothing here is process-global.
    """

    def __init__(self, config: DatabaseConfig, metadata: Optional[MetaData] = None):
        self.config = config
        self.metadata = metadata if metadata is not None else Base.metadata
        self.engine = self._create_engine()
        self.session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    def _create_engine(self):
        connection_string = self.config.get_connection_string()
        if self.config.db_type.lower() == "sqlite":
            connect_args = {"check_same_thread": False}
            if self.config.is_in_memory:
                # One shared connection, otherwise each thread sees its own empty database
                return create_engine(
                    connection_string,
                    echo=self.config.echo,
                    connect_args=connect_args,
                    poolclass=StaticPool,
                )
            return create_engine(
                connection_string, echo=self.config.echo, connect_args=connect_args
            )
        return create_engine(
            connection_string,
            echo=self.config.echo,
            pool_size=self.config.pool_size,
            max_overflow=self.config.max_overflow,
            pool_timeout=self.config.pool_timeout,
        )

    def create_tables(self) -> None:
        self.metadata.create_all(self.engine)

    def drop_tables(self) -> None:
        if self.config.development_mode:
            self.metadata.drop_all(self.engine)
        else:
            raise ServiceError(
                "Cannot drop tables: not in development mode",
                error_code=ErrorCode.CONFIGURATION_ERROR,
                operation="drop_tables",
                development_mode=self.config.development_mode,
            )

    def get_session(self) -> Session:
        return self.session_factory()

    def close(self) -> None:
        self.engine.dispose()


def get_development_config() -> DatabaseConfig:
    """
    Get SQLite configuration for development.
    """
    return DatabaseConfig(
        db_type="sqlite",
        database=os.environ.get("DEV_DB_PATH", ":memory:"),
        echo=os.environ.get("DB_ECHO", "False").lower() == "true",
        development_mode=True,
    )


def import_all_models():
    """Import all models to ensure they're registered with SQLAlchemy metadata."""
    from sqlalchemy.orm import configure_mappers

    from .db_query_models import Query, SearchFilter  # noqa
    from .db_token_models import Token  # noqa
    from .db_widget_models import WidgetConfiguration  # noqa
    from .db_workspace_models import Database, Page, Task  # noqa

    configure_mappers()


def init_db(db_manager: DatabaseManager) -> None:
    """
    Initialize the database, creating all tables.

    Args:
        db_manager: DatabaseManager instance to use for table creation
    """
    get_logger().info(
        "Initializing object store", extra={"db_type": db_manager.config.db_type}
    )
    import_all_models()
    db_manager.create_tables()
