from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import UTC, datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine

import app.main
from app.db import engine as db_engine
from app.db.engine import lifespan_db, missing_tables
from app.models.invitation import Invitation
from app.repos.store import InMemoryStore
from tests.helpers import get_invitation, seed_org, seed_user


def test_missing_tables_lists_unmigrated_membership_tables() -> None:
    sync_engine = create_engine("sqlite://")
    with sync_engine.connect() as conn:
        conn.exec_driver_sql("CREATE TABLE users (id TEXT PRIMARY KEY)")
        conn.exec_driver_sql("CREATE TABLE members (id TEXT PRIMARY KEY)")

        absent = missing_tables(conn)

    assert absent == [
        "invitations",
        "organizations",
        "ownership_transfers",
        "subscriptions",
    ]


def test_missing_tables_ignores_unrelated_tables() -> None:
    sync_engine = create_engine("sqlite://")
    with sync_engine.connect() as conn:
        conn.exec_driver_sql("CREATE TABLE alembic_version (version_num TEXT)")

        absent = missing_tables(conn)

    assert "alembic_version" not in absent
    assert len(absent) == 6


@pytest.mark.skipif(db_engine.engine is not None, reason="DATABASE_URL is set")
def test_lifespan_without_database_uses_memory_store(
    caplog: pytest.LogCaptureFixture,
) -> None:
    async def _enter() -> bool:
        async with lifespan_db() as schema_ready:
            return schema_ready

    with caplog.at_level(logging.INFO, logger="app.db.engine"):
        assert asyncio.run(_enter()) is True

    assert "No DATABASE_URL configured, using in-memory store" in caplog.text


@pytest.mark.skipif(db_engine.engine is not None, reason="DATABASE_URL is set")
def test_startup_expires_lapsed_invitations(
    store: InMemoryStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    owner = seed_user(store, "owner@school.test")
    org = seed_org(store, owner)
    lapsed = replace(
        Invitation.new(
            email="late@school.test",
            organization_id=org.id,
            invited_by=owner.id,
            ttl_days=7,
        ),
        expires_at=datetime.now(UTC) - timedelta(minutes=5),
    )

    async def _add() -> None:
        async with store.transaction() as uow:
            await uow.invitations.add(lapsed)

    asyncio.run(_add())
    monkeypatch.setattr(app.main, "get_store", lambda: store)

    with TestClient(app.main.app):
        pass

    assert get_invitation(store, lapsed.id).status == "expired"
