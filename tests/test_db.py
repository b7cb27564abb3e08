"""Tests for connection helpers."""
import pytest
from sqlalchemy import text

from salesboard.config import DatabaseConfig
from salesboard.db import check_db_connection, get_transaction


def test_connection_check(engine):
    assert check_db_connection(engine) == (True, None)


def test_transaction_rolls_back_on_error(engine):
    with pytest.raises(RuntimeError):
        with get_transaction(engine) as conn:
            conn.execute(text("INSERT INTO stock (product_code, product_name) VALUES ('1', 'GTX')"))
            raise RuntimeError("boom")

    with engine.connect() as conn:
        assert conn.execute(text("SELECT COUNT(*) FROM stock")).scalar() == 0


class TestDatabaseConfig:
    def test_sqlite_fallback(self):
        assert DatabaseConfig().build_url() == "sqlite:///salesboard.db"

    def test_mysql_url_masks_password(self):
        cfg = DatabaseConfig(host="db", user="app", password="p@ss", database="sales")
        assert cfg.build_url() == "mysql+pymysql://app:p%40ss@db:3306/sales"
        assert "p@ss" not in cfg.safe_url()

    def test_explicit_url_wins(self):
        cfg = DatabaseConfig(url="sqlite:///other.db", host="db", user="app")
        assert cfg.build_url() == "sqlite:///other.db"

    def test_explicit_url_keeps_scheme_when_masked(self):
        cfg = DatabaseConfig(url="postgresql+psycopg2://app:s3cret@db:5432/sales")
        assert cfg.safe_url() == "postgresql+psycopg2://***@db:5432/sales"

    def test_explicit_url_without_credentials_unchanged(self):
        assert DatabaseConfig(url="sqlite:///other.db").safe_url() == "sqlite:///other.db"
