"""
Handler factory — builds the CRUD endpoints for any model.

    router.add_api_route("/tours", factory.get_all(tours), methods=["GET"])

Each builder takes a ``Repository`` (model + scope) and returns an async
endpoint. The endpoints hold no resource-specific logic: they orchestrate
the repository and, for listings, the query pipeline, and wrap the result
in the standard ``{"status": "success", ...}`` envelope.

This module deliberately avoids ``from __future__ import annotations``:
the request-body annotations are schema classes captured in closures and
FastAPI must see them as real types.
"""

import logging
from collections.abc import Callable, Sequence
from typing import Any

from fastapi import Depends, Request, Response, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_db
from app.core.exceptions import BadRequest, NotFound
from app.db.query import DEFAULT_SORT, QueryFeatures
from app.db.repository import Repository

logger = logging.getLogger(__name__)


def _not_found(repo: Repository[Any], record_id: int) -> NotFound:
    return NotFound(f"No {repo.model.__tablename__} record found with ID {record_id}")


def _parent_filter(repo: Repository[Any], request: Request, parent: str | None) -> list[Any]:
    """Scope a nested listing (``/tours/{tour_id}/reviews``) to its parent."""
    if parent is None or parent not in request.path_params:
        return []
    try:
        parent_id = int(request.path_params[parent])
    except ValueError as exc:
        raise BadRequest(f"Invalid {parent}: {request.path_params[parent]}") from exc
    return [getattr(repo.model, parent) == parent_id]


def create_one(repo: Repository[Any], schema: type[BaseModel]):
    async def endpoint(body: schema, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:  # type: ignore[valid-type]
        record = await repo.create(db, body.model_dump())  # type: ignore[attr-defined]
        logger.info("Created %s %s", repo.model.__tablename__, record.id)
        return {"status": "success", "data": {"doc": record.to_dict()}}

    return endpoint


def get_one(repo: Repository[Any], *, expand: Sequence[str] = ()):
    async def endpoint(resource_id: int, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
        record = await repo.get(db, resource_id, expand=expand)
        if record is None:
            raise _not_found(repo, resource_id)
        return {"status": "success", "data": {"doc": record.to_dict(expand=expand)}}

    return endpoint


def get_all(
    repo: Repository[Any],
    *,
    parent: str | None = None,
    default_sort: str = DEFAULT_SORT,
):
    async def endpoint(request: Request, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
        statement = repo.select()
        parent_filter = _parent_filter(repo, request, parent)
        if parent_filter:
            statement = statement.where(*parent_filter)

        features = QueryFeatures(
            repo.model,
            request.query_params,
            statement=statement,
            default_sort=default_sort,
        )
        docs = await repo.find_many(db, features.build())
        return {"status": "success", "results": len(docs), "data": {"docs": docs}}

    return endpoint


def update_one(
    repo: Repository[Any],
    schema: type[BaseModel],
    *,
    validate: Callable[[Any], None] | None = None,
):
    async def endpoint(
        resource_id: int,
        body: schema,  # type: ignore[valid-type]
        db: AsyncSession = Depends(get_db),
    ) -> dict[str, Any]:
        changes = body.model_dump(exclude_unset=True)  # type: ignore[attr-defined]
        record = await repo.update(db, resource_id, changes, validate=validate)
        if record is None:
            raise _not_found(repo, resource_id)
        logger.info("Updated %s %d: %s", repo.model.__tablename__, resource_id, sorted(changes))
        return {"status": "success", "data": {"doc": record.to_dict()}}

    return endpoint


def delete_one(repo: Repository[Any], *, soft_delete: str | None = None):
    async def endpoint(resource_id: int, db: AsyncSession = Depends(get_db)) -> Response:
        if not await repo.delete(db, resource_id, soft_delete=soft_delete):
            raise _not_found(repo, resource_id)
        logger.info("Deleted %s %d", repo.model.__tablename__, resource_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return endpoint
