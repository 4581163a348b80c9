"""Tests for the request session dependency."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from medibook.database import get_db


class TestGetDb:
    """Commit on success, roll back on error."""

    @pytest.mark.asyncio
    async def test_commits_after_request(self, monkeypatch):
        sessions = get_db()
        session = await sessions.__anext__()
        calls = []

        async def record_commit():
            calls.append("commit")

        monkeypatch.setattr(session, "commit", record_commit)

        with pytest.raises(StopAsyncIteration):
            await sessions.__anext__()

        assert isinstance(session, AsyncSession)
        assert calls == ["commit"]

    @pytest.mark.asyncio
    async def test_rolls_back_and_reraises(self, monkeypatch):
        sessions = get_db()
        session = await sessions.__anext__()
        calls = []

        async def record_rollback():
            calls.append("rollback")

        monkeypatch.setattr(session, "rollback", record_rollback)

        with pytest.raises(RuntimeError):
            await sessions.athrow(RuntimeError("handler failed"))

        assert calls == ["rollback"]
