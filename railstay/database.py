from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from railstay.config import settings

def _engine_kwargs(url: str) -> dict:
    """SQLite needs a shared connection for in-memory databases"""
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return kwargs
    return {"pool_pre_ping": True}

def enable_sqlite_savepoints(engine) -> None:
    """Let SQLAlchemy own BEGIN on pysqlite so SAVEPOINT nests inside it.

    SQLite has no row locks, so each transaction takes the write lock up
    front with BEGIN IMMEDIATE and concurrent settlements run one at a time.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

engine = create_engine(settings.database_url, **_engine_kwargs(settings.database_url))
if engine.dialect.name == "sqlite":
    enable_sqlite_savepoints(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    """Yield a database session for the duration of a request"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
