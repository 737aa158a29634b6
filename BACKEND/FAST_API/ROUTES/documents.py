# Руководство к файлу (ROUTES/documents.py)
# Назначение:
# - CRUD документов пользователя, общие документы, симулированная загрузка
#   (/api/upload) и поиск по имени (/api/search).
# Важно:
# - Изменять и удалять документ может владелец или admin; для остальных
#   документ «не найден» (404).
# - Загрузка принимает только метаданные, байты файла не передаются.

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from ..deps import RequestContext, get_request_context, get_services
from ..schemas import DocumentCreate, DocumentOut, DocumentUpdate, SuccessResponse, UploadRequest
from BACKEND.DATABASE.models import Document
from BACKEND.SERVICES import AppServices


logger = logging.getLogger("docintel.fastapi.documents")

router = APIRouter(prefix="/api", tags=["documents"])


def _out(docs: List[Document]) -> List[DocumentOut]:
    return [DocumentOut.model_validate(d) for d in docs]


async def _owned_document(services: AppServices, ctx: RequestContext, document_id: int) -> Document:
    doc = await services.storage.get_document(document_id)
    if doc is None or not services.documents.can_modify(ctx.user, doc):
        raise HTTPException(404, "Document not found")
    return doc


@router.get("/documents", response_model=List[DocumentOut])
async def list_documents(
    ctx: RequestContext = Depends(get_request_context),
    services: AppServices = Depends(get_services),
):
    return _out(await services.storage.get_documents(ctx.user.id))


@router.get("/documents/shared", response_model=List[DocumentOut])
async def list_shared_documents(
    ctx: RequestContext = Depends(get_request_context),
    services: AppServices = Depends(get_services),
):
    return _out(await services.storage.get_shared_documents())


@router.get("/documents/{document_id}", response_model=DocumentOut)
async def get_document(
    document_id: int,
    ctx: RequestContext = Depends(get_request_context),
    services: AppServices = Depends(get_services),
):
    doc = await services.storage.get_document(document_id)
    if doc is None or not services.documents.can_view(ctx.user, doc):
        raise HTTPException(404, "Document not found")
    return DocumentOut.model_validate(doc)


@router.post("/documents", response_model=DocumentOut)
async def create_document(
    payload: DocumentCreate,
    ctx: RequestContext = Depends(get_request_context),
    services: AppServices = Depends(get_services),
):
    doc = await services.storage.create_document({**payload.model_dump(), "user_id": ctx.user.id})
    logger.info("[documents.create_document] user_id=%s document_id=%s", ctx.user.id, doc.id)
    return DocumentOut.model_validate(doc)


@router.put("/documents/{document_id}", response_model=DocumentOut)
async def update_document(
    document_id: int,
    payload: DocumentUpdate,
    ctx: RequestContext = Depends(get_request_context),
    services: AppServices = Depends(get_services),
):
    await _owned_document(services, ctx, document_id)
    doc = await services.storage.update_document(document_id, payload.changes())
    if doc is None:
        raise HTTPException(404, "Document not found")
    return DocumentOut.model_validate(doc)


@router.delete("/documents/{document_id}", response_model=SuccessResponse)
async def delete_document(
    document_id: int,
    ctx: RequestContext = Depends(get_request_context),
    services: AppServices = Depends(get_services),
):
    await _owned_document(services, ctx, document_id)
    if not await services.storage.delete_document(document_id):
        raise HTTPException(404, "Document not found")
    return SuccessResponse(success=True)


@router.post("/upload", response_model=DocumentOut)
async def upload(
    payload: UploadRequest,
    ctx: RequestContext = Depends(get_request_context),
    services: AppServices = Depends(get_services),
):
    doc = await services.documents.upload(
        ctx.user,
        filename=payload.filename,
        file_type=payload.file_type,
        file_size=payload.file_size,
    )
    return DocumentOut.model_validate(doc)


@router.api_route("/search", methods=["GET", "POST"], response_model=List[DocumentOut])
async def search(
    q: Optional[str] = None,
    ctx: RequestContext = Depends(get_request_context),
    services: AppServices = Depends(get_services),
):
    return _out(await services.documents.search(ctx.user, q))
