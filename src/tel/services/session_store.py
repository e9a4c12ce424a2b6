"""Session store: remembers the selected row and filter per token and query.

A session token lets a later invocation return to the same filter and row.
Writes are upserts on (token, query_id); concurrent processes writing the same
key resolve as last writer wins.
"""

import structlog
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.exc import SQLAlchemyError

from tel.errors import NotFoundError, PersistenceError
from tel.models.base import ensure_hex_digest
from tel.models.session import SessionInstance, generate_token
from tel.models.tables import SessionInstanceRecord
from tel.services.local_store import LocalStore


class SessionStore:
    """Persists and resolves session instances in the local store."""

    def __init__(
        self,
        store: LocalStore,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._store = store
        self._logger = logger or structlog.get_logger(__name__)

    async def save_instance(
        self,
        query_id: int,
        digest: str,
        token: str | None = None,
        filter_text: str = "",
    ) -> str:
        """Record the selected row digest and filter text for a session.

        Args:
            query_id: Id of the query definition the session belongs to.
            digest: Row digest of the selected row.
            token: Session token; a fresh one is allocated when empty.
            filter_text: Filter text active when the row was selected.

        Returns:
            The effective session token.

        Raises:
            PersistenceError: If the digest is not hexadecimal or the write
                fails, including when the query id does not exist.
        """
        try:
            digest = ensure_hex_digest(digest)
        except ValueError as e:
            raise PersistenceError(f"invalid row digest {digest!r}: {e}") from e
        effective_token = token or generate_token()
        statement = insert(SessionInstanceRecord).values(
            token=effective_token,
            query_id=query_id,
            row_digest=digest,
            filter_text=filter_text or "",
        )
        statement = statement.on_conflict_do_update(
            index_elements=["token", "query_id"],
            set_={
                "row_digest": statement.excluded["row_digest"],
                "filter_text": statement.excluded["filter_text"],
            },
        )
        try:
            async with self._store.session() as session:
                await session.execute(statement)
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"failed to save session instance: {e}") from e

        self._logger.debug(
            "session_instance_saved",
            token=effective_token,
            query_id=query_id,
            digest=digest,
            token_allocated=not token,
        )
        return effective_token

    async def get_instance(self, token: str, query_id: int) -> SessionInstance:
        """Retrieve the stored session instance for a token and query.

        Raises:
            NotFoundError: If nothing was stored for that key.
            PersistenceError: If the stored row is unreadable.
        """
        try:
            async with self._store.session() as session:
                record = await session.get(SessionInstanceRecord, (token, query_id))
        except SQLAlchemyError as e:
            raise PersistenceError(f"session lookup failed: {e}") from e
        if record is None:
            raise NotFoundError("session instance", f"{token}/{query_id}")
        try:
            return SessionInstance.model_validate(record.model_dump())
        except ValidationError as e:
            raise PersistenceError(f"stored session instance {token}/{query_id} is invalid: {e}") from e

    async def lookup_digest(self, token: str, query_id: int) -> str:
        instance = await self.get_instance(token, query_id)
        return instance.row_digest

    async def lookup_filter(self, token: str, query_id: int) -> str:
        instance = await self.get_instance(token, query_id)
        return instance.filter_text

    async def lookup_query_id(self, digest: str) -> int:
        """Find which query a row digest was saved for.

        When several sessions saved the same digest any one of them is used.

        Raises:
            NotFoundError: If no session recorded that digest.
        """
        statement = (
            select(SessionInstanceRecord.query_id)
            .where(SessionInstanceRecord.row_digest == digest.strip().lower())
            .limit(1)
        )
        try:
            async with self._store.session() as session:
                result = await session.execute(statement)
                query_id = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise PersistenceError(f"session lookup failed: {e}") from e
        if query_id is None:
            raise NotFoundError("session digest", digest)
        return query_id
