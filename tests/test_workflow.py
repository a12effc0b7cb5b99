# tests/test_workflow.py
import pytest

from docchat.config import MAX_TOP_K, REFUSAL_SENTENCE
from docchat.errors import ProviderError, StoreError, ValidationError
from docchat.memory.ingestion import ingest
from docchat.memory.schemas import Match
from docchat.prompts.prompt_builder import build_context_block, build_user_prompt
from docchat.prompts.system_prompts import RAG_SYSTEM_PROMPT
from docchat.workflow.document_qa import (
    RagContext,
    answer_question,
    apply_answer_policy,
    build_sources,
    validate_request,
)
from fakes import FakeCompletionClient, FakeEmbedder, make_vector_store


def _match(rank, document_id="doc-1", text=None):
    return Match(
        chunk_id=f"chunk-{rank}",
        document_id=document_id,
        owner_id="alice",
        chunk_index=rank,
        text=text or f"Chunk text {rank}",
        score=1.0 - rank * 0.1,
    )


def _context(**overrides):
    values = dict(
        owner_id="alice",
        question="What is it?",
        top_k=5,
        embedder=FakeEmbedder(),
        store=make_vector_store(),
        completion_client=FakeCompletionClient(),
    )
    values.update(overrides)
    return RagContext(**values)


@pytest.fixture
def store_with_document():
    store = make_vector_store()

    ingest(
        "alice",
        "The office is in Lisbon. The office dog is called Biscuit. "
        "Payroll runs on the last Friday of the month.",
        "doc-1",
        FakeEmbedder(),
        store,
        max_size=40,
        overlap=0,
    )

    return store


class TestPromptBuilding:
    """Context block and prompt construction."""

    def test_context_block_numbers_in_rank_order(self):
        block = build_context_block([_match(0, text="first"), _match(1, text="second")])

        assert block == "CHUNK 1 (doc: doc-1):\nfirst\n\nCHUNK 2 (doc: doc-1):\nsecond"

    def test_empty_context_block(self):
        assert build_context_block([]) == ""

    def test_user_prompt_contains_question_and_context(self):
        prompt = build_user_prompt("Who?", "CHUNK 1 (doc: d):\ntext")

        assert prompt.startswith("Context:\nCHUNK 1 (doc: d):\ntext")
        assert "Question: Who?" in prompt
        assert prompt.endswith("Answer:")

    def test_system_prompt_includes_guardrails(self):
        assert REFUSAL_SENTENCE in RAG_SYSTEM_PROMPT
        assert "ONLY" in RAG_SYSTEM_PROMPT
        assert "Do not invent names, amounts, or dates" in RAG_SYSTEM_PROMPT
        assert "[CHUNK 2]" in RAG_SYSTEM_PROMPT


class TestStages:

    def test_blank_question_rejected(self):
        result = validate_request(_context(question="   "))

        assert not result.ok
        assert isinstance(result.error, ValidationError)
        assert result.error.message == "Message is required"

    def test_non_positive_top_k_rejected(self):
        result = validate_request(_context(top_k=0))

        assert not result.ok
        assert isinstance(result.error, ValidationError)

    def test_top_k_capped(self):
        ctx = _context(top_k=MAX_TOP_K + 50)

        assert validate_request(ctx).ok
        assert ctx.top_k == MAX_TOP_K

    def test_empty_completion_becomes_refusal(self):
        ctx = _context(completion="   \n")

        apply_answer_policy(ctx)

        assert ctx.answer == REFUSAL_SENTENCE
        assert ctx.refused is True

    def test_model_refusal_flagged(self):
        ctx = _context(completion=REFUSAL_SENTENCE)

        apply_answer_policy(ctx)

        assert ctx.answer == REFUSAL_SENTENCE
        assert ctx.refused is True

    def test_completion_returned_unchanged(self):
        ctx = _context(completion="  Lisbon. [CHUNK 1]\n")

        apply_answer_policy(ctx)

        assert ctx.answer == "  Lisbon. [CHUNK 1]\n"
        assert ctx.refused is False

    def test_sources_in_rank_order(self):
        sources = build_sources([_match(0, "a"), _match(1, "b")])

        assert sources == [
            {"document_id": "a", "chunk_id": "chunk-0"},
            {"document_id": "b", "chunk_id": "chunk-1"},
        ]


class TestAnswerQuestion:

    def test_answer_with_sources(self, store_with_document):
        FakeCompletionClient.reply = "The dog is called Biscuit. [CHUNK 1]"

        outcome = answer_question(
            "alice", "What is the office dog called?",
            FakeEmbedder(), store_with_document, FakeCompletionClient(), top_k=2,
        )

        assert outcome.ok
        assert outcome.answer == "The dog is called Biscuit. [CHUNK 1]"
        assert len(outcome.sources) == 2
        assert all(s["document_id"] == "doc-1" for s in outcome.sources)
        assert outcome.to_response() == {
            "answer": outcome.answer,
            "sources": outcome.sources,
        }

    def test_prompt_carries_ranked_context(self, store_with_document):
        answer_question(
            "alice", "What is the office dog called?",
            FakeEmbedder(), store_with_document, FakeCompletionClient(), top_k=1,
        )

        system_prompt, user_prompt = FakeCompletionClient.prompts[-1]

        assert system_prompt == RAG_SYSTEM_PROMPT
        assert "CHUNK 1 (doc: doc-1):\nThe office dog is called Biscuit." in user_prompt
        assert "CHUNK 2" not in user_prompt

    def test_empty_completion_refuses_but_keeps_sources(self, store_with_document):
        FakeCompletionClient.reply = ""

        outcome = answer_question(
            "alice", "What is the office dog called?",
            FakeEmbedder(), store_with_document, FakeCompletionClient(),
        )

        assert outcome.ok
        assert outcome.answer == REFUSAL_SENTENCE
        assert outcome.refused
        assert outcome.sources

    def test_no_documents_still_asks_model(self):
        FakeCompletionClient.reply = REFUSAL_SENTENCE

        outcome = answer_question(
            "alice", "Anything?",
            FakeEmbedder(), make_vector_store(), FakeCompletionClient(),
        )

        assert outcome.ok
        assert outcome.sources == []
        assert outcome.answer == REFUSAL_SENTENCE
        assert FakeCompletionClient.prompts

    def test_other_owner_documents_invisible(self, store_with_document):
        outcome = answer_question(
            "bob", "What is the office dog called?",
            FakeEmbedder(), store_with_document, FakeCompletionClient(),
        )

        assert outcome.sources == []

    def test_embedding_failure_aborts(self, store_with_document):
        FakeEmbedder.fail_on = "dog"

        outcome = answer_question(
            "alice", "What is the office dog called?",
            FakeEmbedder(), store_with_document, FakeCompletionClient(),
        )

        assert not outcome.ok
        assert isinstance(outcome.error, ProviderError)
        assert outcome.failed_stage == "embed_query"
        assert outcome.answer == ""
        assert outcome.sources == []
        assert FakeCompletionClient.prompts == []

    def test_store_failure_aborts(self, store_with_document, monkeypatch):
        def broken(owner_id, query_vector, k):
            raise StoreError("search failed", operation="top_k")

        monkeypatch.setattr(store_with_document, "top_k", broken)

        outcome = answer_question(
            "alice", "Question?",
            FakeEmbedder(), store_with_document, FakeCompletionClient(),
        )

        assert outcome.failed_stage == "search_chunks"
        assert isinstance(outcome.error, StoreError)

    def test_completion_failure_is_not_a_refusal(self, store_with_document):
        class FailingClient(FakeCompletionClient):
            def complete(self, system_prompt, user_prompt):
                raise ProviderError("model down", provider="fake")

        outcome = answer_question(
            "alice", "What is the office dog called?",
            FakeEmbedder(), store_with_document, FailingClient(),
        )

        assert not outcome.ok
        assert outcome.failed_stage == "generate_completion"
        assert outcome.answer != REFUSAL_SENTENCE

    def test_validation_failure_makes_no_provider_calls(self):
        outcome = answer_question(
            "alice", "",
            FakeEmbedder(), make_vector_store(), FakeCompletionClient(),
        )

        assert outcome.failed_stage == "validate_request"
        assert FakeEmbedder.calls == []
