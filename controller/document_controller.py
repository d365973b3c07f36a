# controller/document_controller.py
from typing import Optional
from fastapi import APIRouter, Depends, Query
from model.api import SearchResponse
from service.document_service import DocumentService
from util.constants import InternalURIs
from util.enums import SearchMode
from controller.controller_dependencies import (
    document_rate_limiter,
    get_document_service,
)

document_router = APIRouter(dependencies=[Depends(document_rate_limiter)])


@document_router.get(InternalURIs.DOCUMENT_STRUCTURE)
async def document_structure(
    service: DocumentService = Depends(get_document_service),
):
    return {"success": True, "structure": service.structure()}


@document_router.get(InternalURIs.DOCUMENT_OVERVIEW)
async def document_overview(
    service: DocumentService = Depends(get_document_service),
):
    return {"success": True, "overview": service.overview()}


@document_router.get(InternalURIs.DOCUMENT_SECTION)
async def document_section(
    section_id: str,
    includeChildren: bool = False,
    highlight: Optional[str] = None,
    service: DocumentService = Depends(get_document_service),
):
    # highlight is a comma-separated term list
    terms = [t.strip() for t in highlight.split(",")] if highlight else None
    section = service.section(
        section_id, include_children=includeChildren, highlight_terms=terms
    )
    return {"success": True, "section": section}


@document_router.get(InternalURIs.DOCUMENT_SEARCH, response_model=SearchResponse)
async def document_search(
    term: str,
    limit: int = Query(10, ge=1, le=50),
    mode: SearchMode = SearchMode.KEYWORD,
    service: DocumentService = Depends(get_document_service),
) -> SearchResponse:
    return service.search(term, limit=limit, mode=mode)
