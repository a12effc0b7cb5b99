from fastapi import APIRouter, UploadFile, File, Form, Request
from fastapi.concurrency import run_in_threadpool
import uuid
import logging
import time

from typing import Any, Optional

from docchat.config import (
    ALLOWED_FILE_EXTENSIONS,
    DOCUMENT_REGISTRY_PATH,
    EMBEDDING_DIMENSION,
    MAX_FILE_SIZE_MB,
    OBJECT_STORE_DIR,
    PROFILE_STORE_PATH,
    TOP_K,
    DEFAULT_CHAT_MODEL,
)
from docchat.errors import (
    FileTooLargeError,
    NotFoundError,
    ValidationError,
)
from docchat.api.auth import authenticate
from docchat.observability.metrics import metrics_tracker
from docchat.observability.posthog_client import posthog_client

from docchat.models import (
    ChatResponse,
    ChatModelInfo,
    DeleteDocumentResponse,
    DocumentInfo,
    HealthResponse,
    ListDocumentsResponse,
    ListModelsResponse,
    ProfileInfo,
    ProfileResponse,
    ProfileUpdateRequest,
    ResetResponse,
    UploadResponse,
)

from docchat.llm.client import CompletionClient
from docchat.llm.model_registry import CHAT_MODELS, ChatModel, resolve_chat_model
from docchat.memory.chunker import normalize_text
from docchat.memory.embedder import Embedder
from docchat.memory.ingestion import ingest
from docchat.memory.loader import MIME_TYPES, extract_text, file_extension, sanitize_filename
from docchat.memory.object_store import LocalObjectStore
from docchat.memory.registry import DocumentRegistry, ProfileStore
from docchat.memory.schemas import DocumentRecord
from docchat.memory.store import VectorStore
from docchat.workflow.document_qa import answer_question


# ============================================================
# LOGGER
# ============================================================

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================
# GLOBAL SINGLETONS
# ============================================================

vector_store = VectorStore(dim=EMBEDDING_DIMENSION)

document_registry = DocumentRegistry(DOCUMENT_REGISTRY_PATH)

profile_store = ProfileStore(PROFILE_STORE_PATH)

object_store = LocalObjectStore(OBJECT_STORE_DIR)

# Provider gateways are built per request from the owner's credential
embedder_factory = Embedder

completion_client_factory = CompletionClient


# ============================================================
# HELPERS
# ============================================================

def validate_file_size(content: bytes):

    size_mb = len(content) / (1024 * 1024)

    if size_mb > MAX_FILE_SIZE_MB:
        raise FileTooLargeError(
            f"File too large: {size_mb:.2f}MB",
            field="file",
        )


def parse_top_k(value: Any) -> int:
    """
    topK from the request body; anything but a positive integer
    falls back to the default.
    """

    if isinstance(value, bool) or value is None:
        return TOP_K

    try:
        top_k = int(value)
    except (TypeError, ValueError):
        return TOP_K

    return top_k if top_k >= 1 else TOP_K


async def read_json_body(request: Request) -> dict:

    try:
        body = await request.json()
    except ValueError:
        return {}

    return body if isinstance(body, dict) else {}


def resolve_owner_model(owner_id: str) -> ChatModel:
    """The owner's preferred chat model, or the default."""

    profile = profile_store.get(owner_id)

    preferred = profile.preferred_model if profile else None

    if preferred and preferred not in CHAT_MODELS:

        logger.warning(
            "Preferred model no longer available, using default",
            extra={"preferred_model": preferred},
        )

        preferred = None

    return resolve_chat_model(preferred)


def document_info(document: DocumentRecord) -> DocumentInfo:

    return DocumentInfo(
        id=document.id,
        title=document.title,
        created_at=document.created_at.isoformat(),
        source_path=document.source_path,
        mime_type=document.mime_type,
        chunks=document.chunk_count,
    )


def profile_info(owner_id: str) -> ProfileInfo:

    profile = profile_store.get(owner_id)

    return ProfileInfo(
        id=owner_id,
        openai_api_key=profile.masked_key(),
        preferred_model=profile.preferred_model,
        created_at=profile.created_at,
        updated_at=profile.updated_at,
    )


# ============================================================
# HEALTH
# ============================================================

@router.get("/health", response_model=HealthResponse)
def health_check():

    return HealthResponse(
        status="healthy",
        total_documents=document_registry.count(),
        total_vectors=vector_store.count(),
    )


# ============================================================
# RAG CHAT
# ============================================================

@router.post("/api/chat/rag", response_model=ChatResponse)
async def chat_rag(request: Request):

    owner_id = authenticate(request)

    body = await read_json_body(request)

    message = body.get("message")

    if not isinstance(message, str) or not message.strip():
        raise ValidationError("Message is required", field="message")

    top_k = parse_top_k(body.get("topK"))

    # Checked before any paid provider call
    credential = profile_store.get_embedding_credential(owner_id)

    model = resolve_owner_model(owner_id)

    start_time = time.time()

    embedder = embedder_factory(credential)
    completion_client = completion_client_factory(model, credential)

    outcome = await run_in_threadpool(
        answer_question,
        owner_id=owner_id,
        question=message,
        embedder=embedder,
        store=vector_store,
        completion_client=completion_client,
        top_k=top_k,
    )

    latency = time.time() - start_time

    posthog_client.track_question(
        distinct_id=owner_id,
        model=model.key,
        question=message,
        latency=latency,
        refused=outcome.refused,
        success=outcome.ok,
    )

    if not outcome.ok:

        logger.error(
            "RAG answer failed",
            extra={
                "stage": outcome.failed_stage,
                "error": str(outcome.error),
                "error_type": type(outcome.error).__name__,
            },
        )

        raise outcome.error

    posthog_client.track_retrieval(
        distinct_id=owner_id,
        chunks_retrieved=len(outcome.matches),
        top_score=outcome.matches[0].score if outcome.matches else None,
    )

    return outcome.to_response()


# ============================================================
# UPLOAD DOCUMENT
# ============================================================

def process_upload(
    owner_id: str,
    credential: str,
    filename: str,
    title: str,
    mime_type: str,
    data: bytes,
) -> DocumentRecord:
    """
    Store → extract → chunk/embed/persist → register.

    Any failure removes what earlier steps wrote.
    """

    document_id = str(uuid.uuid4())

    source_path = f"docs/{owner_id}/{uuid.uuid4()}-{sanitize_filename(filename)}"

    object_store.put(source_path, data)

    ingested = False

    try:

        text = extract_text(filename, data)

        if not normalize_text(text):
            raise ValidationError("No text could be extracted from file", field="file")

        chunks = ingest(
            owner_id=owner_id,
            raw_text=text,
            document_id=document_id,
            embedder=embedder_factory(credential),
            store=vector_store,
        )

        ingested = True

        document = DocumentRecord(
            id=document_id,
            owner_id=owner_id,
            title=title,
            source_path=source_path,
            mime_type=mime_type,
            chunk_count=chunks,
        )

        document_registry.add(document)

    except Exception:

        logger.warning(
            "Upload failed, removing partial writes",
            extra={"owner_id": owner_id, "document_id": document_id},
        )

        if ingested:
            vector_store.delete_document(owner_id, document_id)

        object_store.delete(source_path)

        raise

    return document


@router.post("/api/docs/upload", response_model=UploadResponse)
async def upload_document(
    request: Request,
    file: Optional[UploadFile] = File(None),
    title: Optional[str] = Form(None),
):

    owner_id = authenticate(request)

    if file is None or not file.filename:
        raise ValidationError("No file provided", field="file")

    extension = file_extension(file.filename)

    if extension not in ALLOWED_FILE_EXTENSIONS:
        raise ValidationError("Unsupported file", field="file")

    credential = profile_store.get_embedding_credential(owner_id)

    start_time = time.time()

    file_bytes = await file.read()

    validate_file_size(file_bytes)

    if not file_bytes:
        raise ValidationError("Uploaded file is empty", field="file")

    mime_type = file.content_type or MIME_TYPES[extension]

    document = await run_in_threadpool(
        process_upload,
        owner_id=owner_id,
        credential=credential,
        filename=file.filename,
        title=(title or "").strip() or file.filename,
        mime_type=mime_type,
        data=file_bytes,
    )

    posthog_client.track_document_upload(
        distinct_id=owner_id,
        document_id=document.id,
        mime_type=mime_type,
        chunks=document.chunk_count,
        latency=time.time() - start_time,
    )

    return UploadResponse(
        id=document.id,
        title=document.title,
        chunks=document.chunk_count,
    )


# ============================================================
# LIST DOCUMENTS
# ============================================================

@router.get("/api/docs", response_model=ListDocumentsResponse)
def list_documents(request: Request):

    owner_id = authenticate(request)

    return ListDocumentsResponse(
        documents=[
            document_info(doc)
            for doc in document_registry.list_for_owner(owner_id)
        ]
    )


# ============================================================
# DELETE DOCUMENT
# ============================================================

@router.delete("/api/docs/{document_id}", response_model=DeleteDocumentResponse)
def delete_document(document_id: str, request: Request):

    owner_id = authenticate(request)

    document = document_registry.get(owner_id, document_id)

    if document is None:
        raise NotFoundError("Document not found")

    vector_store.delete_document(owner_id, document_id)

    object_store.delete(document.source_path)

    document_registry.delete(owner_id, document_id)

    return DeleteDocumentResponse(id=document_id, ok=True)


# ============================================================
# RESET (ALL OWNER DOCUMENTS)
# ============================================================

@router.post("/api/docs/reset", response_model=ResetResponse)
def reset_documents(request: Request):

    owner_id = authenticate(request)

    # Chunks first, so no orphaned vectors outlive their documents
    vector_store.delete_owner(owner_id)

    deleted = document_registry.delete_owner(owner_id)

    files = object_store.list_and_delete(f"docs/{owner_id}")

    logger.info(
        "Owner documents reset",
        extra={"documents": deleted, "files": files},
    )

    posthog_client.track_documents_reset(distinct_id=owner_id, documents=deleted)

    return ResetResponse(ok=True, deleted={"documents": deleted})


# ============================================================
# PROFILE
# ============================================================

@router.get("/api/profile", response_model=ProfileResponse)
def get_profile(request: Request):

    owner_id = authenticate(request)

    if profile_store.get(owner_id) is None:
        raise NotFoundError("Profile not found")

    return ProfileResponse(profile=profile_info(owner_id))


@router.put("/api/profile", response_model=ProfileResponse)
def update_profile(payload: ProfileUpdateRequest, request: Request):

    owner_id = authenticate(request)

    if not payload.openai_api_key:
        raise ValidationError("OpenAI API key is required", field="openai_api_key")

    if payload.preferred_model is not None:
        resolve_chat_model(payload.preferred_model)

    profile_store.upsert(
        owner_id,
        openai_api_key=payload.openai_api_key,
        preferred_model=payload.preferred_model,
    )

    return ProfileResponse(profile=profile_info(owner_id))


# ============================================================
# MODELS
# ============================================================

@router.get("/api/models", response_model=ListModelsResponse)
def list_models():

    return ListModelsResponse(
        models=[
            ChatModelInfo(
                key=model.key,
                provider=model.provider.value,
                display_name=model.display_name,
            )
            for model in CHAT_MODELS.values()
        ],
        default=DEFAULT_CHAT_MODEL,
    )


# ============================================================
# METRICS ENDPOINT
# ============================================================

@router.get("/metrics")
def get_metrics():

    return metrics_tracker.get_metrics()
