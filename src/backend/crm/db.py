import os

from dotenv import load_dotenv
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, DeclarativeBase


# Local development loads environment from project root by default
load_dotenv(dotenv_path=os.getenv("ENV_FILE", ".env"), override=False)

# Choose SQLite automatically for pytest runs unless explicitly forced
_is_pytest = bool(os.getenv("PYTEST_CURRENT_TEST")) or os.getenv("TESTING") == "1"
_force_pg_tests = os.getenv("FORCE_POSTGRES_TESTS") == "1"
if _is_pytest and not _force_pg_tests:
    DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite:///./test_crm.db")
else:
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./crm.db")
    # Normalize hosted postgres URLs for SQLAlchemy 2.x
    if DATABASE_URL.startswith("postgres://"):
        DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql+psycopg2://", 1)


class Base(DeclarativeBase):
    pass


pool_size = int(os.getenv("DB_POOL_SIZE", "5"))
max_overflow = int(os.getenv("DB_MAX_OVERFLOW", "5"))
pool_timeout = int(os.getenv("DB_POOL_TIMEOUT", "10"))
pool_recycle = int(os.getenv("DB_POOL_RECYCLE_SECONDS", "900"))
db_app_name = os.getenv("DB_APP_NAME", "crm")
db_connect_timeout = int(os.getenv("DB_CONNECT_TIMEOUT", "5"))
pg_statement_timeout_ms = int(os.getenv("PG_STATEMENT_TIMEOUT_MS", "12000"))

_is_sqlite = DATABASE_URL.startswith("sqlite")
_connect_args = {"check_same_thread": False} if _is_sqlite else {
    "connect_timeout": db_connect_timeout,
    "application_name": db_app_name,
}
_pool_args = {} if _is_sqlite else {
    "pool_size": pool_size,
    "max_overflow": max_overflow,
    "pool_timeout": pool_timeout,
    "pool_recycle": pool_recycle,
}

engine = create_engine(DATABASE_URL, connect_args=_connect_args, **_pool_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# Apply Postgres per-connection statement timeout at DBAPI connect
def _on_connect(dbapi_connection, connection_record):  # type: ignore
    if not DATABASE_URL.startswith("postgres"):
        return
    cur = dbapi_connection.cursor()
    try:
        cur.execute("SET statement_timeout TO %s", (pg_statement_timeout_ms,))
        cur.execute("SET application_name TO %s", (db_app_name,))
    finally:
        cur.close()


event.listen(engine, "connect", _on_connect)
