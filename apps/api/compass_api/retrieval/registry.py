"""Named retrievers and the options schema each one accepts.

A retriever is an async handler ``fn(query, options) -> RetrieverResponse``
registered under a unique name together with a pydantic model describing its
options. Callers go through :class:`RetrieverAction`, which turns plain
strings into query documents and validates raw option mappings against the
schema before the handler sees them.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from compass_api.retrieval.document import Document, RetrieverResponse

logger = logging.getLogger(__name__)

RetrieverFn = Callable[[Document, Any], Awaitable[RetrieverResponse]]


class RetrieverNotFoundError(LookupError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Retriever not registered: {name}")
        self.name = name


@dataclass
class RetrieverAction:
    name: str
    config_schema: type[BaseModel]
    fn: RetrieverFn

    def parse_options(self, options: BaseModel | Mapping[str, Any] | None) -> BaseModel:
        if isinstance(options, self.config_schema):
            return options
        # Raises pydantic.ValidationError for options the schema rejects.
        return self.config_schema.model_validate(dict(options or {}))

    async def __call__(
        self,
        query: Document | str,
        options: BaseModel | Mapping[str, Any] | None = None,
    ) -> RetrieverResponse:
        if isinstance(query, str):
            query = Document.from_text(query)
        return await self.fn(query, self.parse_options(options))


class RetrieverRegistry:
    def __init__(self) -> None:
        self._actions: dict[str, RetrieverAction] = {}

    def define_retriever(self, name: str, config_schema: type[BaseModel], fn: RetrieverFn) -> RetrieverAction:
        if name in self._actions:
            raise ValueError(f"Retriever already registered: {name}")
        action = RetrieverAction(name=name, config_schema=config_schema, fn=fn)
        self._actions[name] = action
        logger.info("Registered retriever %s", name)
        return action

    def lookup(self, name: str) -> RetrieverAction:
        try:
            return self._actions[name]
        except KeyError:
            raise RetrieverNotFoundError(name) from None

    def names(self) -> list[str]:
        return sorted(self._actions)

    def __contains__(self, name: object) -> bool:
        return name in self._actions
