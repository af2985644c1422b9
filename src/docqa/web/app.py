"""FastAPI application exposing the knowledge base over HTTP."""

from __future__ import annotations

import asyncio
import logging
import threading
from pathlib import Path
from typing import Any, List

from fastapi import Depends, FastAPI, File, Form, HTTPException, UploadFile
from pydantic import BaseModel

from docqa import __version__
from docqa.config import AppConfig
from docqa.errors import (
    DocumentNotFound,
    EmbeddingFailure,
    IndexUnavailable,
    IngestionError,
    RetrievalUnavailable,
)
from docqa.models import Document
from docqa.service import KnowledgeBase

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="docqa", version=__version__)


class DocumentOut(BaseModel):
    id: int
    title: str
    content: str
    content_type: str
    created_at: str | None = None

    @classmethod
    def from_document(cls, document: Document) -> DocumentOut:
        return cls(
            id=document.id,
            title=document.title,
            content=document.content,
            content_type=document.content_type,
            created_at=document.created_at,
        )


class AskPayload(BaseModel):
    question: str


class AskResponse(BaseModel):
    question: str
    answer: str


_knowledge_base: KnowledgeBase | None = None
_knowledge_base_lock = threading.Lock()


def get_knowledge_base() -> KnowledgeBase:
    """Return the process-wide knowledge base, building it on first use.

    FastAPI resolves sync dependencies on worker threads, so concurrent first
    requests must wait for a single construction.
    """
    global _knowledge_base
    if _knowledge_base is None:
        with _knowledge_base_lock:
            if _knowledge_base is None:
                _knowledge_base = KnowledgeBase.from_config(AppConfig.from_env(), Path.cwd())
    return _knowledge_base


@app.on_event("startup")
async def startup_event() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")


def _unavailable(exc: Exception) -> HTTPException:
    LOGGER.error("Request failed: %s", exc)
    return HTTPException(status_code=503, detail=str(exc))


@app.post("/api/documents")
async def upload_document(
    file: UploadFile = File(...),
    title: str = Form(...),
    kb: KnowledgeBase = Depends(get_knowledge_base),
) -> DocumentOut:
    if not title.strip():
        raise HTTPException(status_code=400, detail="Empty title")

    raw = await file.read()
    try:
        document = await asyncio.to_thread(kb.ingest, raw, title.strip(), file.content_type)
    except (EmbeddingFailure, IndexUnavailable, IngestionError) as exc:
        raise _unavailable(exc) from exc
    return DocumentOut.from_document(document)


@app.get("/api/documents/{document_id}")
async def get_document(
    document_id: int, kb: KnowledgeBase = Depends(get_knowledge_base)
) -> DocumentOut:
    try:
        document = kb.get_document(document_id)
    except DocumentNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return DocumentOut.from_document(document)


@app.get("/api/documents")
async def list_documents(kb: KnowledgeBase = Depends(get_knowledge_base)) -> List[DocumentOut]:
    return [DocumentOut.from_document(document) for document in kb.list_documents()]


@app.post("/api/qa/ask")
async def ask(payload: AskPayload, kb: KnowledgeBase = Depends(get_knowledge_base)) -> AskResponse:
    question = payload.question.strip()
    if not question:
        raise HTTPException(status_code=400, detail="Empty question")

    try:
        answer = await asyncio.to_thread(kb.answer, question)
    except RetrievalUnavailable as exc:
        raise _unavailable(exc) from exc
    return AskResponse(question=question, answer=answer)


@app.get("/health")
async def health(kb: KnowledgeBase = Depends(get_knowledge_base)) -> dict[str, Any]:
    try:
        counts = kb.status()
    except IndexUnavailable as exc:
        raise _unavailable(exc) from exc
    return {
        "status": "ok",
        "documents": counts.documents,
        "chunks": counts.chunks,
        "vectors": counts.vectors,
    }
