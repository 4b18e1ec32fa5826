"""FastAPI entrypoint wiring the movie repository to the HTTP routes."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Path, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import get_settings
from app.db import (
    MovieIdMismatch,
    MovieNotFound,
    MovieRepository,
    build_engine,
    build_session_factory,
    get_movie_repository,
    init_models,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the database engine and ensure tables before serving."""

    engine = build_engine(get_settings())
    await init_models(engine)
    app.state.session_factory = build_session_factory(engine)
    try:
        yield
    finally:
        await engine.dispose()


settings = get_settings()
app = FastAPI(
    title="Movie API",
    lifespan=lifespan,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    openapi_url="/openapi.json" if settings.is_development else None,
)
router = APIRouter(prefix="/api/movies", tags=["movies"])

# Ids outside the INTEGER column range are rejected before reaching the database.
MovieId = Annotated[int, Path(ge=-(2**31), le=2**31 - 1)]


def _as_utc(value: datetime) -> datetime:
    """Naive values are taken as UTC; aware values are converted to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class MovieBody(BaseModel):
    """Movie payload; on create the id is ignored, on update it must match the route."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: int = 0
    title: str
    genre: str | None = None
    release_date: datetime = Field(..., description="ISO-8601 release date/time")

    @field_validator("release_date")
    @classmethod
    def _normalize_release_date(cls, value: datetime) -> datetime:
        return _as_utc(value)


class MovieResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    title: str | None = None
    genre: str | None = None
    release_date: datetime

    @field_validator("release_date")
    @classmethod
    def _normalize_release_date(cls, value: datetime) -> datetime:
        # SQLite hands back naive values; they were stored as UTC
        return _as_utc(value)


@app.exception_handler(SQLAlchemyError)
async def handle_database_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


@app.get("/")
def root():
    return {"ok": True, "service": "movie-api"}


@router.get("", response_model=list[MovieResponse])
async def get_movies(repo: MovieRepository = Depends(get_movie_repository)) -> list[MovieResponse]:
    movies = await repo.list_all()
    return [MovieResponse.model_validate(movie) for movie in movies]


@router.get("/{movie_id}", response_model=MovieResponse)
async def get_movie(
    movie_id: MovieId,
    repo: MovieRepository = Depends(get_movie_repository),
) -> MovieResponse:
    movie = await repo.get_by_id(movie_id)
    if movie is None:
        logger.warning("Movie %s not found", movie_id)
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Movie not found")
    return MovieResponse.model_validate(movie)


@router.post("", response_model=MovieResponse, status_code=status.HTTP_201_CREATED)
async def post_movie(
    payload: MovieBody,
    request: Request,
    response: Response,
    repo: MovieRepository = Depends(get_movie_repository),
) -> MovieResponse:
    """Insert a new movie; the database assigns its id."""

    movie = await repo.add(
        title=payload.title,
        genre=payload.genre,
        release_date=payload.release_date,
    )
    response.headers["Location"] = str(request.url_for("get_movie", movie_id=movie.id))
    return MovieResponse.model_validate(movie)


@router.put("/{movie_id}", status_code=status.HTTP_204_NO_CONTENT)
async def put_movie(
    movie_id: MovieId,
    payload: MovieBody,
    repo: MovieRepository = Depends(get_movie_repository),
) -> Response:
    """Replace title, genre and release date of an existing movie."""

    if payload.id != movie_id:
        logger.warning("Rejected update: route id %s, body id %s", movie_id, payload.id)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Movie id mismatch")

    try:
        await repo.update(
            movie_id,
            body_id=payload.id,
            title=payload.title,
            genre=payload.genre,
            release_date=payload.release_date,
        )
    except MovieIdMismatch as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Movie id mismatch",
        ) from exc
    except MovieNotFound as exc:
        logger.warning("Cannot update movie %s: not found", movie_id)
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Movie not found",
        ) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{movie_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_movie(
    movie_id: MovieId,
    repo: MovieRepository = Depends(get_movie_repository),
) -> Response:
    # Deleting an absent id is a silent success.
    if not await repo.delete(movie_id):
        logger.info("Delete of absent movie %s ignored", movie_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


app.include_router(router)
