from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from pydantic import BaseModel, StrictInt

from compass_api.backend import get_nearest_place
from compass_api.retrieval.document import Document, RetrieverResponse
from compass_api.retrieval.registry import RetrieverAction, RetrieverRegistry

PLACE_RETRIEVER_NAME = "postgres-placeRetriever"

NearestPlaceLookup = Callable[..., Awaitable[dict[str, Any]]]


class QueryOptions(BaseModel):
    k: StrictInt | None = None


def row_to_document(row: Mapping[str, Any]) -> Document:
    metadata = dict(row)
    known_for = metadata.pop("knownFor")
    return Document.from_text(known_for, metadata)


def define_place_retriever(
    registry: RetrieverRegistry,
    connection: Any,
    lookup: NearestPlaceLookup = get_nearest_place,
) -> RetrieverAction:
    """Register the nearest-place retriever bound to ``connection``.

    ``k`` goes to the lookup as its ``limit`` untouched, and the query text
    is sent as-is, empty strings included.
    """

    async def retrieve_places(query: Document, options: QueryOptions) -> RetrieverResponse:
        result = await lookup(connection, {"placeDescription": query.text()}, limit=options.k)
        rows = result["data"]["places_embedding_similarity"]
        return RetrieverResponse(documents=[row_to_document(row) for row in rows])

    return registry.define_retriever(PLACE_RETRIEVER_NAME, QueryOptions, retrieve_places)
