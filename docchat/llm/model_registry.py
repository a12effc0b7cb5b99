# docchat/llm/model_registry.py

"""
Chat models the service can answer with.

Each model is resolved once, from the owner's preference, into a
ChatModel. Callers branch on `provider` and the capability fields,
never on the key string.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from docchat.config import DEFAULT_CHAT_MODEL, LLM_MAX_TOKENS
from docchat.errors import ValidationError


class Provider(str, Enum):
    OPENAI = "openai"
    GEMINI = "gemini"


@dataclass(frozen=True)
class ChatModel:

    key: str
    provider: Provider
    name: str
    display_name: str
    supports_temperature: bool = True
    uses_owner_credential: bool = True
    max_output_tokens: int = LLM_MAX_TOKENS


CHAT_MODELS: Dict[str, ChatModel] = {
    model.key: model
    for model in (
        ChatModel(
            key="openai/gpt-4o-mini",
            provider=Provider.OPENAI,
            name="gpt-4o-mini",
            display_name="GPT 4o Mini",
        ),
        ChatModel(
            key="openai/gpt-4o",
            provider=Provider.OPENAI,
            name="gpt-4o",
            display_name="GPT 4o",
        ),
        ChatModel(
            key="google/gemini-1.5-flash",
            provider=Provider.GEMINI,
            name="gemini-1.5-flash",
            display_name="Gemini 1.5 Flash",
            uses_owner_credential=False,
        ),
    )
}


def resolve_chat_model(key: Optional[str] = None) -> ChatModel:
    """
    Resolve a model key ("provider/name") to its ChatModel.

    None resolves to the service default.
    """

    if key is None:
        key = DEFAULT_CHAT_MODEL

    model = CHAT_MODELS.get(key)

    if model is None:
        raise ValidationError(f"Unknown model: {key}", field="preferred_model")

    return model
