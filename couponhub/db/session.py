from collections.abc import Generator, Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool

from couponhub.core.config import get_settings

_engine: Engine | None = None
_session_local: sessionmaker | None = None


def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str, *, app_env: str) -> Engine:
    is_sqlite = database_url.startswith("sqlite")
    connect_args = {"check_same_thread": False, "timeout": 30} if is_sqlite else {}
    engine_kwargs: dict = {"pool_pre_ping": True, "connect_args": connect_args}
    if is_sqlite and app_env.lower() == "test":
        # SQLite test DBs are short-lived and should avoid pooled handles.
        engine_kwargs["poolclass"] = NullPool
    engine = create_engine(database_url, **engine_kwargs)
    if is_sqlite:
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = build_engine(settings.postgres_dsn, app_env=settings.app_env)
    return _engine


def get_session_local() -> sessionmaker:
    global _session_local
    if _session_local is None:
        _session_local = sessionmaker(bind=get_engine(), autoflush=False, autocommit=False, class_=Session)
    return _session_local


class _SessionLocalProxy:
    def __call__(self, *args, **kwargs) -> Session:
        return get_session_local()(*args, **kwargs)


SessionLocal = _SessionLocalProxy()


def reset_engine_state() -> None:
    """Dispose and clear global engine/session state (used by tests)."""
    global _engine, _session_local
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_local = None


def bind_session_factory_for_tests(factory: sessionmaker) -> None:
    """Bind an explicit session factory for test isolation."""
    global _engine, _session_local
    reset_engine_state()
    _session_local = factory
    _engine = factory.kw.get("bind")


@contextmanager
def session_scope() -> Iterator[Session]:
    """Session for work outside a request (startup seeding, probes); uncommitted work is rolled back."""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_db() -> Generator[Session]:
    with session_scope() as db:
        yield db
