from typing import Any

from pydantic import BaseModel, Field


class RetrieveRequest(BaseModel):
    query: str
    options: dict[str, Any] = Field(default_factory=dict)


class DocumentModel(BaseModel):
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class RetrieveResponse(BaseModel):
    documents: list[DocumentModel]


class RetrieverList(BaseModel):
    retrievers: list[str]
