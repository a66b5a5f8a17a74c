from __future__ import annotations

from pathlib import Path

import pytest

from agentguard.config import Settings
from agentguard.ledger.sqlite import SQLiteAuditLog
from agentguard.service import AuditService
from agentguard.storage import SQLiteDatabase


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "audit.db"


@pytest.fixture
def database(db_path: Path) -> SQLiteDatabase:
    return SQLiteDatabase(db_path)


@pytest.fixture
def audit_log(database: SQLiteDatabase) -> SQLiteAuditLog:
    return SQLiteAuditLog(database)


@pytest.fixture
def settings(db_path: Path) -> Settings:
    return Settings(
        database_path=db_path,
        internal_email_domains={"company.com"},
        deny_email_domains={"evil.com"},
        governed_tools={"mail"},
    )


@pytest.fixture
def service(settings: Settings) -> AuditService:
    return AuditService(settings)
