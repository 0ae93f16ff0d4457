from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rackops.services.errors import ProcessError, StoreError

logger = logging.getLogger(__name__)


class BaseService:
    """
    Base class for services. Holds a session for use across multiple repositories.

    Services keep the workflow logic and own the unit of work; repositories only
    stage reads and writes.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @asynccontextmanager
    async def unit_of_work(self, failure_title: str) -> AsyncIterator[None]:
        """
        Commit everything staged inside the block as one transaction.

        A ProcessError raised inside the block rolls back and propagates as is;
        a database error rolls back and is raised as StoreError(failure_title).
        """
        try:
            yield
            await self.session.commit()
        except ProcessError:
            await self.session.rollback()
            raise
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.exception("%s; transaction rolled back", failure_title)
            raise StoreError(failure_title, str(exc)) from exc

    async def read_guard(self, failure_title: str, awaitable):
        """Await a read; database errors become StoreError and leave state alone."""
        try:
            return await awaitable
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.exception("%s", failure_title)
            raise StoreError(failure_title, str(exc)) from exc
