import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import ValidationError

from compass_api.auth import get_current_subject
from compass_api.retrieval.factory import get_registry
from compass_api.retrieval.registry import RetrieverNotFoundError, RetrieverRegistry
from compass_api.schemas import DocumentModel, RetrieveRequest, RetrieveResponse, RetrieverList

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/retrievers", tags=["retrievers"])


@router.get("", response_model=RetrieverList)
async def list_retrievers(
    _: str = Depends(get_current_subject),
    registry: RetrieverRegistry = Depends(get_registry),
) -> RetrieverList:
    return RetrieverList(retrievers=registry.names())


@router.post("/{name}/retrieve", response_model=RetrieveResponse)
async def retrieve(
    name: str,
    request: RetrieveRequest,
    subject: str = Depends(get_current_subject),
    registry: RetrieverRegistry = Depends(get_registry),
) -> RetrieveResponse:
    try:
        action = registry.lookup(name)
    except RetrieverNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    try:
        options = action.parse_options(request.options)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=exc.errors(include_url=False, include_context=False),
        ) from exc

    logger.info("retrieve name=%s subject=%s", name, subject)
    response = await action(request.query, options)
    return RetrieveResponse(documents=[DocumentModel(**doc.to_dict()) for doc in response.documents])
