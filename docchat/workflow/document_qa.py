# docchat/workflow/document_qa.py

"""
Answer a question from the owner's documents.

The request runs as an ordered list of stages over one RagContext.
Each stage returns a StageResult; the first failed stage ends the run
and its error becomes the outcome's error.

    validate_request → embed_query → search_chunks
        → build_context → generate_completion → apply_answer_policy
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from docchat.config import MAX_TOP_K, REFUSAL_SENTENCE, TOP_K
from docchat.errors import DocChatError, ValidationError
from docchat.memory.schemas import Match
from docchat.prompts.prompt_builder import build_context_block, build_user_prompt
from docchat.prompts.system_prompts import RAG_SYSTEM_PROMPT

logger = logging.getLogger(__name__)


@dataclass
class RagContext:

    owner_id: str
    question: str
    top_k: int
    embedder: object
    store: object
    completion_client: object

    query_vector: Optional[List[float]] = None
    matches: List[Match] = field(default_factory=list)
    context_block: str = ""
    user_prompt: str = ""
    completion: str = ""
    answer: str = ""
    refused: bool = False


@dataclass(frozen=True)
class StageResult:

    ok: bool
    stage: str
    error: Optional[DocChatError] = None

    @classmethod
    def success(cls, stage: str) -> "StageResult":
        return cls(ok=True, stage=stage)

    @classmethod
    def failure(cls, stage: str, error: DocChatError) -> "StageResult":
        return cls(ok=False, stage=stage, error=error)


@dataclass
class AnswerOutcome:

    answer: str = ""
    sources: List[dict] = field(default_factory=list)
    matches: List[Match] = field(default_factory=list)
    refused: bool = False
    error: Optional[DocChatError] = None
    failed_stage: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_response(self) -> dict:
        return {"answer": self.answer, "sources": self.sources}


Stage = Callable[[RagContext], StageResult]


# ============================================================
# STAGES
# ============================================================

def validate_request(ctx: RagContext) -> StageResult:

    if not isinstance(ctx.question, str) or not ctx.question.strip():
        return StageResult.failure(
            "validate_request",
            ValidationError("Message is required", field="message"),
        )

    if not isinstance(ctx.top_k, int) or ctx.top_k < 1:
        return StageResult.failure(
            "validate_request",
            ValidationError("topK must be a positive integer", field="topK"),
        )

    ctx.question = ctx.question.strip()
    ctx.top_k = min(ctx.top_k, MAX_TOP_K)

    return StageResult.success("validate_request")


def embed_query(ctx: RagContext) -> StageResult:

    try:
        ctx.query_vector = ctx.embedder.embed(ctx.question)
    except DocChatError as e:
        return StageResult.failure("embed_query", e)

    return StageResult.success("embed_query")


def search_chunks(ctx: RagContext) -> StageResult:

    try:
        ctx.matches = ctx.store.top_k(ctx.owner_id, ctx.query_vector, ctx.top_k)
    except DocChatError as e:
        return StageResult.failure("search_chunks", e)

    logger.info(
        "Retrieval completed",
        extra={
            "chunks_retrieved": len(ctx.matches),
            "top_score": ctx.matches[0].score if ctx.matches else None,
        },
    )

    return StageResult.success("search_chunks")


def build_context(ctx: RagContext) -> StageResult:

    # Zero matches still goes to the model with an empty context
    ctx.context_block = build_context_block(ctx.matches)
    ctx.user_prompt = build_user_prompt(ctx.question, ctx.context_block)

    return StageResult.success("build_context")


def generate_completion(ctx: RagContext) -> StageResult:

    try:
        ctx.completion = ctx.completion_client.complete(
            RAG_SYSTEM_PROMPT,
            ctx.user_prompt,
        ) or ""
    except DocChatError as e:
        return StageResult.failure("generate_completion", e)

    return StageResult.success("generate_completion")


def apply_answer_policy(ctx: RagContext) -> StageResult:

    # Content is returned as produced; only blank output becomes the refusal.
    if not ctx.completion.strip():
        ctx.answer = REFUSAL_SENTENCE
        ctx.refused = True
    else:
        ctx.answer = ctx.completion
        ctx.refused = ctx.completion.strip() == REFUSAL_SENTENCE

    return StageResult.success("apply_answer_policy")


PIPELINE: List[Stage] = [
    validate_request,
    embed_query,
    search_chunks,
    build_context,
    generate_completion,
    apply_answer_policy,
]


# ============================================================
# RUNNER
# ============================================================

def run_pipeline(ctx: RagContext, stages: List[Stage] = PIPELINE) -> StageResult:

    result = StageResult.success("start")

    for stage in stages:

        result = stage(ctx)

        if not result.ok:

            logger.warning(
                "RAG stage failed",
                extra={
                    "stage": result.stage,
                    "error_type": type(result.error).__name__,
                },
            )

            return result

    return result


def build_sources(matches: List[Match]) -> List[dict]:
    """Every ranked match, in order, whether or not the model cited it."""

    return [
        {"document_id": m.document_id, "chunk_id": m.chunk_id}
        for m in matches
    ]


def answer_question(
    owner_id: str,
    question: str,
    embedder,
    store,
    completion_client,
    top_k: int = TOP_K,
) -> AnswerOutcome:
    """
    Retrieval-augmented answer with the fixed refusal contract.

    The answer is atomic: an outcome either carries an answer and its
    sources, or an error and nothing else.
    """

    ctx = RagContext(
        owner_id=owner_id,
        question=question,
        top_k=top_k,
        embedder=embedder,
        store=store,
        completion_client=completion_client,
    )

    result = run_pipeline(ctx)

    if not result.ok:
        return AnswerOutcome(error=result.error, failed_stage=result.stage)

    return AnswerOutcome(
        answer=ctx.answer,
        sources=build_sources(ctx.matches),
        matches=list(ctx.matches),
        refused=ctx.refused,
    )
