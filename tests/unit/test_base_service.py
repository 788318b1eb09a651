"""
Tests for BaseService and its decorators.
"""

import pytest
from loguru import logger

from app.services.base_service import BaseService, log_operation, transaction
from app.utils.exceptions import UpstreamRateError, ValidationError


class EchoService(BaseService):
    """Service whose single operation returns or raises what it is given."""

    @transaction
    @log_operation
    async def run(self, outcome):
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def levels():
    """Collect level names of records logged by EchoService."""
    collected: list[str] = []
    handler_id = logger.add(
        lambda message: collected.append(message.record["level"].name),
        level="DEBUG",
        filter=lambda record: record["extra"].get("service") == "EchoService",
    )
    yield collected
    logger.remove(handler_id)


class TestTransaction:
    """Tests for the transaction decorator."""

    @pytest.mark.asyncio
    async def test_commits_on_success(self, mock_session) -> None:
        """Result is returned after commit."""
        assert await EchoService(mock_session).run(42) == 42
        mock_session.commit.assert_awaited_once()
        mock_session.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error,level",
        [
            (ValidationError("bad input"), "WARNING"),
            (UpstreamRateError("HTTP 500"), "ERROR"),
            (RuntimeError("bug"), "CRITICAL"),
        ],
    )
    async def test_rolls_back_and_logs_by_category(
        self, mock_session, levels, error, level
    ) -> None:
        """Failures roll back, re-raise and log at their category's level."""
        with pytest.raises(type(error)):
            await EchoService(mock_session).run(error)

        mock_session.rollback.assert_awaited_once()
        mock_session.commit.assert_not_awaited()
        assert levels[-1] == level
