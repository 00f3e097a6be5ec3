"""数据库会话管理模块"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from .config import DATABASE_URL
from .errors import LedgerError
from .models import Base

logger = logging.getLogger(__name__)


def _ensure_sqlite_directory(url: str) -> None:
    """为 SQLite 文件数据库创建所在目录."""

    database = make_url(url).database
    if not database or database == ":memory:":
        return
    Path(database).parent.mkdir(parents=True, exist_ok=True)


def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    """SQLite 默认不检查外键，每个新连接都需要打开."""

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record) -> None:  # noqa: ARG001
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


class Store:
    """账本的持久化存储：持有 engine 与 session 工厂."""

    def __init__(self, url: str = DATABASE_URL) -> None:
        self.url = url
        is_sqlite = url.startswith("sqlite")
        connect_args = {"check_same_thread": False} if is_sqlite else {}
        if is_sqlite:
            _ensure_sqlite_directory(url)

        self.engine = create_engine(
            url, connect_args=connect_args, future=True, pool_pre_ping=True
        )
        if is_sqlite:
            _enable_sqlite_foreign_keys(self.engine)

        self._session_factory = sessionmaker(
            bind=self.engine,
            autoflush=False,
            autocommit=False,
            future=True,
            expire_on_commit=False,
        )

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """提供数据库会话的上下文管理器."""
        session: Session = self._session_factory()
        try:
            yield session
            session.commit()
        except LedgerError:
            session.rollback()
            raise
        except Exception as exc:  # noqa: BLE001
            session.rollback()
            logger.exception("database session failed: %s", exc)
            raise
        finally:
            session.close()

    def init_schema(self) -> None:
        """初始化数据库结构（仅创建缺失的表，可重复执行）."""

        Base.metadata.create_all(bind=self.engine)
        logger.info("database schema ready: %s", self.engine.url.render_as_string(hide_password=True))

    def dispose(self) -> None:
        """释放连接池."""

        self.engine.dispose()
