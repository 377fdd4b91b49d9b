"""Database Session Manager — async sessions and the ledger's database error boundary.

Invariants:
    - Every session rolls back on any exception (no partial appends leak)
    - IntegrityError matching a caller-supplied IntegrityRule surfaces as that rule's
      domain error (ConcurrentModificationError, DuplicateLabResultError, ...)
    - Every other SQLAlchemy failure surfaces as DatabaseError (CRITICAL, 503)
    - BloodTrackError raised inside a session passes through after the rollback

Design Decisions:
    - Rules are passed per session, not registered globally: the store knows which
      constraint a given write can hit and which unit or donation it concerns
    - Constraints matched by name (PostgreSQL reports it) or by column list / FK text
      (SQLite only reports columns)
    - Engine injectable: tests hand in an in-memory SQLite engine, the app builds a
      pooled PostgreSQL engine through from_url()
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncGenerator, Callable, Sequence

from sqlalchemy import text
from sqlalchemy.exc import (
    IntegrityError, OperationalError, DBAPIError, SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import (
    AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine,
)

from bloodtrack.core.errors import BloodTrackError, DatabaseError

logger = logging.getLogger(__name__)

SQLITE_FOREIGN_KEY = "FOREIGN KEY constraint failed"


@dataclass(frozen=True)
class IntegrityRule:
    """Translate one violated constraint into a domain error."""
    markers: tuple[str, ...]
    to_error: Callable[[], BloodTrackError]

    def matches(self, error: IntegrityError) -> bool:
        detail = str(error.orig)
        return any(marker in detail for marker in self.markers)


def translate_integrity_error(
    error: IntegrityError, rules: Sequence[IntegrityRule],
) -> BloodTrackError:
    for rule in rules:
        if rule.matches(error):
            return rule.to_error()
    return DatabaseError("Integrity constraint violated", "commit")


class DatabaseSessionManager:
    """Hands out AsyncSessions and maps driver failures onto the ledger's errors."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._session_factory = async_sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False,
        )

    @classmethod
    def from_url(
        cls, database_url: str, pool_size: int = 20, max_overflow: int = 10,
    ) -> "DatabaseSessionManager":
        return cls(create_async_engine(
            database_url,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=True,
            pool_recycle=3600,
        ))

    @asynccontextmanager
    async def session(
        self, rules: Sequence[IntegrityRule] = (),
    ) -> AsyncGenerator[AsyncSession, None]:
        """Session with rollback on failure and integrity errors mapped via rules."""
        session = self._session_factory()
        try:
            yield session
        except BloodTrackError:
            await session.rollback()
            raise
        except IntegrityError as e:
            await session.rollback()
            mapped = translate_integrity_error(e, rules)
            if isinstance(mapped, DatabaseError):
                logger.error(f"DB integrity error: {e}")
            else:
                logger.warning(
                    f"Write rejected by constraint: {mapped.message}",
                    extra={"unit_id": mapped.context.unit_id, "error_code": mapped.code},
                )
            raise mapped from e
        except OperationalError as e:
            await session.rollback()
            logger.error(f"DB operational error: {e}")
            raise DatabaseError("Connection or operational error", "execute") from e
        except DBAPIError as e:
            await session.rollback()
            logger.error(f"DB driver error: {e}")
            raise DatabaseError("Database driver error", "query") from e
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"SQLAlchemy error: {e}")
            raise DatabaseError("Database operation failed", "unknown") from e
        finally:
            await session.close()

    async def health_check(self) -> bool:
        """Check database connectivity (for readiness probes)."""
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"DB health check failed: {e}")
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()


# Singleton (initialized on startup)
db_manager: DatabaseSessionManager | None = None


def init_db(database_url: str, **kwargs) -> DatabaseSessionManager:
    global db_manager
    db_manager = DatabaseSessionManager.from_url(database_url, **kwargs)
    return db_manager
