# docchat/config.py
"""
Configuration for the docchat retrieval service.

This file centralizes all tunable parameters for the RAG pipeline.
Deployment values and secrets come from the environment; everything
else is a plain constant.
"""

import os


# ========== DOCUMENT PROCESSING ==========

# Chunk configuration (characters, not tokens)
CHUNK_SIZE = 900  # max characters per chunk
CHUNK_OVERLAP = 150  # trailing characters carried into the next chunk

# File upload limits
MAX_FILE_SIZE_MB = 10
ALLOWED_FILE_EXTENSIONS = [".pdf", ".docx", ".csv"]

# Extraction / ingestion safety limits
MAX_DOCUMENT_CHARACTERS = 2_000_000
MAX_CHUNKS_PER_DOCUMENT = 3000


# ========== EMBEDDING CONFIGURATION ==========

EMBEDDING_MODEL = "text-embedding-3-small"

EMBEDDING_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
}

EMBEDDING_DIMENSION = EMBEDDING_DIMENSIONS[EMBEDDING_MODEL]

# Bounded fan-out for per-chunk embedding calls (provider rate limits)
EMBED_MAX_CONCURRENCY = int(os.getenv("EMBED_MAX_CONCURRENCY", "4"))


# ========== RETRIEVAL CONFIGURATION ==========

TOP_K = 5
MAX_TOP_K = 20

REFUSAL_SENTENCE = "I'm sorry, I don't have information about that."


# ========== LLM CONFIGURATION ==========

DEFAULT_CHAT_MODEL = "openai/gpt-4o-mini"

LLM_TEMPERATURE = 0.0
LLM_MAX_TOKENS = 800

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")


# ========== PROVIDER CALL POLICY ==========

# Retries apply to transient provider failures only
PROVIDER_MAX_RETRIES = 3
PROVIDER_RETRY_DELAY = 1.0  # seconds, doubled per attempt
PROVIDER_TIMEOUT_SECONDS = 60.0


# ========== VECTOR STORE ==========

# ":memory:" runs Qdrant embedded in-process
QDRANT_URL = os.getenv("QDRANT_URL", ":memory:")
QDRANT_API_KEY = os.getenv("QDRANT_API_KEY")
QDRANT_COLLECTION = os.getenv("QDRANT_COLLECTION", "document_chunks")


# ========== LOCAL STORAGE ==========

STORAGE_DIR = os.getenv("STORAGE_DIR", "storage")
LOG_DIR = os.getenv("LOG_DIR", "logs")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

OBJECT_STORE_DIR = os.path.join(STORAGE_DIR, "objects")
DOCUMENT_REGISTRY_PATH = os.path.join(STORAGE_DIR, "document_registry.json")
PROFILE_STORE_PATH = os.path.join(STORAGE_DIR, "profiles.json")
METRICS_PATH = os.path.join(STORAGE_DIR, "metrics.json")


# ========== AUTH ==========

# "token:owner_id,token2:owner_id2"
API_TOKENS = os.getenv("API_TOKENS", "")


# ========== OBSERVABILITY ==========

POSTHOG_API_KEY = os.getenv("POSTHOG_API_KEY")
POSTHOG_HOST = os.getenv("POSTHOG_HOST", "https://app.posthog.com")


# ========== DESIGN TRADE-OFFS (DOCUMENTED) ==========

"""
TRADE-OFF DECISIONS:

1. CHUNK_SIZE = 900 characters, CHUNK_OVERLAP = 150:
   - Sentence-aware packing keeps chunks readable for citation
   - 150 characters of carried tail keeps a sentence fragment of context
     across boundaries without doubling storage

2. No similarity threshold:
   - The model decides relevance from the numbered context
   - Empty model output is replaced by REFUSAL_SENTENCE

3. TOP_K = 5 (capped at MAX_TOP_K):
   - Fewer (3) → cheaper prompts but might miss context
   - More (10+) → more context but higher token cost

4. Qdrant payload filter on owner_id:
   - Every search and delete is scoped to one owner
   - Results are re-checked against the owner before use
"""
