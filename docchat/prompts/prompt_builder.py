# docchat/prompts/prompt_builder.py

from typing import List

from docchat.memory.schemas import Match


def build_context_block(matches: List[Match]) -> str:
    """
    Number matches in ranked order, 1-based, labelled with their document.

    An empty match list gives an empty block.
    """

    return "\n\n".join(
        f"CHUNK {rank} (doc: {match.document_id}):\n{match.text}"
        for rank, match in enumerate(matches, 1)
    )


def build_user_prompt(question: str, context_block: str) -> str:

    prompt = f"""
Context:
{context_block}

Question: {question}

Answer:
"""

    return prompt.strip()
