# docchat/models.py
from pydantic import BaseModel, Field, validator
from typing import List, Optional


class SourceRef(BaseModel):
    """A retrieved chunk the answer was built from."""
    document_id: str
    chunk_id: str


class ChatResponse(BaseModel):
    """Answer plus ranked sources."""
    answer: str
    sources: List[SourceRef]


class UploadResponse(BaseModel):
    """Response after uploading a document."""
    id: str
    title: str
    chunks: int


class DocumentInfo(BaseModel):
    """Information about a stored document."""
    id: str
    title: str
    created_at: str
    source_path: str
    mime_type: str
    chunks: int


class ListDocumentsResponse(BaseModel):
    documents: List[DocumentInfo]


class DeletedCounts(BaseModel):
    documents: int


class ResetResponse(BaseModel):
    ok: bool
    deleted: DeletedCounts


class DeleteDocumentResponse(BaseModel):
    """Response after deleting a document."""
    id: str
    ok: bool


class ProfileUpdateRequest(BaseModel):
    """Owner credential and model preference."""
    openai_api_key: Optional[str] = Field(None, max_length=300)
    preferred_model: Optional[str] = Field(None, max_length=100)

    @validator('openai_api_key')
    def strip_api_key(cls, v):
        """Treat whitespace-only keys as missing."""
        if v is None:
            return v
        return v.strip() or None


class ProfileInfo(BaseModel):
    id: str
    openai_api_key: Optional[str] = None
    preferred_model: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ProfileResponse(BaseModel):
    profile: ProfileInfo


class ChatModelInfo(BaseModel):
    key: str
    provider: str
    display_name: str


class ListModelsResponse(BaseModel):
    models: List[ChatModelInfo]
    default: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    total_documents: int
    total_vectors: int
