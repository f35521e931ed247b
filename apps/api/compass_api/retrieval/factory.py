from functools import lru_cache

from compass_api.db import SessionLocal
from compass_api.retrieval.places import define_place_retriever
from compass_api.retrieval.registry import RetrieverRegistry


def build_registry(connection=SessionLocal) -> RetrieverRegistry:
    registry = RetrieverRegistry()
    define_place_retriever(registry, connection)
    return registry


@lru_cache
def get_registry() -> RetrieverRegistry:
    return build_registry()
