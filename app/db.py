"""Database session management and the movie repository."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import AsyncIterator

from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from app.core.config import Settings
from app.models import Base, Movie

logger = logging.getLogger(__name__)


class MovieStoreError(Exception):
    """Base exception for movie store failures."""


class MovieNotFound(MovieStoreError):
    """Raised when no row matches the requested movie id."""

    def __init__(self, movie_id: int) -> None:
        super().__init__(f"movie {movie_id} not found")
        self.movie_id = movie_id


class MovieIdMismatch(MovieStoreError):
    """Raised when the id embedded in a movie differs from the target id."""

    def __init__(self, movie_id: int, body_id: int) -> None:
        super().__init__(f"movie id {body_id} does not match target id {movie_id}")
        self.movie_id = movie_id
        self.body_id = body_id


def build_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine described by settings.

    In-memory SQLite gets a StaticPool so every session sees the same database.
    """

    url = make_url(settings.database_url)
    kwargs: dict = {"echo": settings.sql_echo}
    if url.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        if url.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_pre_ping"] = True
    return create_async_engine(url, **kwargs)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


async def init_models(engine: AsyncEngine) -> None:
    """Create tables if they do not exist (handy for local dev)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    """FastAPI dependency yielding one session per request."""

    session_factory: async_sessionmaker[AsyncSession] = request.app.state.session_factory
    session = session_factory()
    try:
        yield session
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


class MovieRepository:
    """Async data access for the movies table, bound to one session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def add(
        self,
        *,
        title: str | None,
        genre: str | None,
        release_date: datetime,
    ) -> Movie:
        movie = Movie(title=title, genre=genre, release_date=release_date)
        self.session.add(movie)
        await self.session.commit()
        await self.session.refresh(movie)
        logger.info("Created movie %s (%r)", movie.id, movie.title)
        return movie

    async def get_by_id(self, movie_id: int) -> Movie | None:
        return await self.session.get(Movie, movie_id)

    async def list_all(self) -> list[Movie]:
        query = select(Movie).order_by(Movie.id)
        result = await self.session.execute(query)
        return list(result.scalars())

    async def update(
        self,
        movie_id: int,
        *,
        body_id: int,
        title: str | None,
        genre: str | None,
        release_date: datetime,
    ) -> Movie:
        """Replace every mutable field of the movie identified by ``movie_id``."""

        if body_id != movie_id:
            raise MovieIdMismatch(movie_id, body_id)
        movie = await self.get_by_id(movie_id)
        if movie is None:
            raise MovieNotFound(movie_id)
        movie.title = title
        movie.genre = genre
        movie.release_date = release_date
        await self.session.commit()
        logger.info("Updated movie %s", movie_id)
        return movie

    async def delete(self, movie_id: int) -> bool:
        """Remove the movie; returns False when no such row existed."""

        movie = await self.get_by_id(movie_id)
        if movie is None:
            return False
        await self.session.delete(movie)
        await self.session.commit()
        logger.info("Deleted movie %s", movie_id)
        return True


def get_movie_repository(session: AsyncSession = Depends(get_session)) -> MovieRepository:
    return MovieRepository(session)
