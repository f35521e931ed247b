from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from compass_api.config import Settings, get_settings

logger = logging.getLogger(__name__)

NEAREST_PLACE_SQL = text(
    """
    SELECT
      ref,
      name,
      country,
      continent,
      known_for AS "knownFor",
      tags,
      image_url AS "imageUrl"
    FROM (
      SELECT
        places.*,
        places.embedding <-> CAST(embedding(:model, :place_description) AS vector) AS distance
      FROM places
      WHERE places.embedding IS NOT NULL
    ) AS ranked
    WHERE distance < :within
    ORDER BY distance ASC
    LIMIT :limit
    """
)


async def get_nearest_place(
    connection: async_sessionmaker[AsyncSession],
    variables: dict[str, Any],
    *,
    limit: int | None = None,
    settings: Settings | None = None,
) -> dict[str, Any]:
    """Run the places_embedding_similarity query for a free-text description.

    The description is embedded inside Postgres via google_ml_integration and
    compared by L2 distance against ``places.embedding``. ``limit`` falls back
    to ``places_default_limit`` when unset. The result keeps the query's
    response envelope: ``{"data": {"places_embedding_similarity": [...]}}``.
    """
    settings = settings or get_settings()
    params = {
        "model": settings.places_embedding_model,
        "place_description": variables["placeDescription"],
        "within": settings.places_similarity_within,
        "limit": limit if limit is not None else settings.places_default_limit,
    }
    logger.debug("Nearest place lookup model=%s limit=%s", params["model"], params["limit"])

    async with connection() as session:
        rows = (await session.execute(NEAREST_PLACE_SQL, params)).mappings().all()

    logger.debug("Nearest place lookup returned %d rows", len(rows))
    return {"data": {"places_embedding_similarity": [dict(row) for row in rows]}}
