from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

ROOT = Path(__file__).resolve().parents[1]


def _config(connection) -> Config:
    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "alembic"))
    cfg.attributes["connection"] = connection
    cfg.attributes["configure_logger"] = False
    return cfg


def test_upgrade_creates_every_table_and_downgrade_removes_them(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'migrations.db'}")

    with engine.begin() as conn:
        command.upgrade(_config(conn), "head")
    with engine.connect() as conn:
        tables = set(inspect(conn).get_table_names())
        blog_indexes = {ix["name"] for ix in inspect(conn).get_indexes("blogs")}
    assert {"companies", "intakes", "media_items", "reviews", "blogs", "events_ledger"} <= tables
    assert "ix_blogs_tenant_status" in blog_indexes

    with engine.begin() as conn:
        command.downgrade(_config(conn), "base")
    with engine.connect() as conn:
        assert set(inspect(conn).get_table_names()) <= {"alembic_version"}
    engine.dispose()
