# tests/test_chunker.py
import pytest

from docchat.errors import ValidationError
from docchat.memory.chunker import chunk_text, normalize_text, split_sentences


class TestNormalization:
    """Whitespace handling before chunking."""

    def test_collapses_whitespace_runs(self):
        """Tabs, newlines and repeated spaces become one space."""
        assert normalize_text("  Hello\n\n world\t again  ") == "Hello world again"

    def test_empty_and_whitespace_only(self):
        assert normalize_text("") == ""
        assert normalize_text(" \n\t ") == ""

    def test_split_on_terminal_punctuation(self):
        """Sentences end at . ! or ? followed by whitespace."""
        assert split_sentences("One. Two! Three? Four") == ["One.", "Two!", "Three?", "Four"]

    def test_no_split_without_whitespace(self):
        """Decimals and abbreviations without a following space stay intact."""
        assert split_sentences("Pi is 3.14 exactly.") == ["Pi is 3.14 exactly."]


class TestChunkText:
    """Sentence-aware, overlapping chunking."""

    def test_known_example(self):
        """Second chunk is seeded with the tail of the first, then cut to size."""
        chunks = chunk_text("Hello world. This is a test.", max_size=15, overlap=5)

        assert chunks == ["Hello world.", "orld. This is a"]

    def test_short_text_is_single_chunk(self):
        assert chunk_text("Short text.", max_size=100, overlap=10) == ["Short text."]

    def test_sentences_pack_greedily(self):
        """Sentences join with a single space while they fit."""
        chunks = chunk_text("A b. C d. E f.", max_size=9, overlap=0)

        assert chunks == ["A b. C d.", "E f."]

    def test_empty_input_returns_no_chunks(self):
        assert chunk_text("", max_size=10, overlap=2) == []
        assert chunk_text("   \n  ", max_size=10, overlap=2) == []

    def test_long_sentence_is_truncated_without_overlap(self):
        """A sentence longer than max_size is cut, not split."""
        chunks = chunk_text("x" * 50, max_size=10, overlap=0)

        assert chunks == ["x" * 10]

    def test_zero_overlap_chunks_start_with_sentences(self):
        text = "Alpha beta. Gamma delta. Epsilon zeta."

        chunks = chunk_text(text, max_size=12, overlap=0)

        assert chunks == ["Alpha beta.", "Gamma delta.", "Epsilon zeta"]

    def test_no_chunk_exceeds_max_size(self):
        text = " ".join(
            f"Sentence number {i} talks about topic {i * 7}." for i in range(200)
        )

        for max_size, overlap in [(50, 10), (120, 30), (200, 0), (80, 200)]:
            chunks = chunk_text(text, max_size=max_size, overlap=overlap)
            assert chunks
            assert all(0 < len(c) <= max_size for c in chunks)

    def test_chunks_are_whitespace_normalized(self):
        chunks = chunk_text("First  line.\n\nSecond\tline.", max_size=200, overlap=0)

        assert chunks == ["First line. Second line."]

    def test_overlap_carries_previous_tail(self):
        """Each chunk after the first starts with the previous chunk's tail."""
        text = "The cat sat on the mat. The dog ran in the park. The bird flew away."

        chunks = chunk_text(text, max_size=40, overlap=8)

        assert len(chunks) > 1

        for previous, current in zip(chunks, chunks[1:]):
            assert current.startswith(previous[-8:])

    def test_overlap_larger_than_max_size_still_bounded(self):
        chunks = chunk_text("One two. Three four. Five six.", max_size=10, overlap=50)

        assert all(len(c) <= 10 for c in chunks)

    def test_deterministic(self):
        text = "Repeatable input. Same output every time. " * 20

        assert chunk_text(text, 60, 15) == chunk_text(text, 60, 15)

    def test_document_order_preserved(self):
        text = "First sentence here. Second sentence here. Third sentence here."

        chunks = chunk_text(text, max_size=25, overlap=0)

        joined = " ".join(chunks)
        assert joined.index("First") < joined.index("Second") < joined.index("Third")


SENTENCES = [f"Sentence {i} mentions item {i * 7}." for i in range(60)]

SIZE_PAIRS = [(45, 5), (60, 10), (80, 20), (120, 40), (200, 64)]


class TestChunkProperties:
    """Properties that hold for every (max_size, overlap) pair."""

    @pytest.mark.parametrize("max_size,overlap", SIZE_PAIRS)
    def test_every_sentence_covered_in_order(self, max_size, overlap):
        """
        Sentences short enough to fit after an overlap seed appear whole,
        at least once, in their original order.
        """
        assert all(len(s) + overlap + 1 <= max_size for s in SENTENCES)

        chunks = chunk_text(" ".join(SENTENCES), max_size=max_size, overlap=overlap)

        positions = []

        for sentence in SENTENCES:
            found = [
                (index, chunk.find(sentence))
                for index, chunk in enumerate(chunks)
                if sentence in chunk
            ]
            assert found, sentence
            positions.append(found[0])

        assert positions == sorted(positions)

    @pytest.mark.parametrize("max_size,overlap", SIZE_PAIRS)
    def test_rechunking_normalized_chunks_keeps_boundaries(self, max_size, overlap):
        text = normalize_text(" ".join(SENTENCES))

        chunks = chunk_text(text, max_size=max_size, overlap=overlap)

        for chunk in chunks:
            again = normalize_text(chunk)
            assert chunk_text(again, max_size=max_size, overlap=overlap) == [again]

    @pytest.mark.parametrize("max_size,overlap", SIZE_PAIRS)
    def test_prenormalized_input_chunks_identically(self, max_size, overlap):
        messy = "\n\n".join("  " + s + "\t" for s in SENTENCES)

        assert chunk_text(normalize_text(messy), max_size, overlap) == chunk_text(
            messy, max_size, overlap
        )


class TestChunkParameters:

    @pytest.mark.parametrize("max_size", [0, -1])
    def test_non_positive_max_size_rejected(self, max_size):
        with pytest.raises(ValidationError):
            chunk_text("Some text.", max_size=max_size, overlap=0)

    def test_negative_overlap_rejected(self):
        with pytest.raises(ValidationError):
            chunk_text("Some text.", max_size=10, overlap=-1)
