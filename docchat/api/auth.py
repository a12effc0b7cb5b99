# docchat/api/auth.py

"""
Bearer-token authentication.

Stand-in for an external identity provider: tokens map to owner ids
through the API_TOKENS setting. Every route that touches owner data
resolves the owner here first.
"""

import logging
from typing import Dict

from fastapi import Request

from docchat.config import API_TOKENS
from docchat.errors import AuthError

logger = logging.getLogger(__name__)


def parse_token_map(raw: str) -> Dict[str, str]:
    """
    "tok1:alice, tok2:bob" → {"tok1": "alice", "tok2": "bob"}
    """

    tokens = {}

    for entry in (raw or "").split(","):

        entry = entry.strip()

        if not entry:
            continue

        token, sep, owner_id = entry.partition(":")

        if not sep or not token.strip() or not owner_id.strip():
            logger.warning("Ignoring malformed API token entry")
            continue

        tokens[token.strip()] = owner_id.strip()

    return tokens


TOKEN_OWNERS = parse_token_map(API_TOKENS)


def authenticate(request: Request) -> str:
    """
    Resolve the request's owner id.

    Raises:
        AuthError: missing, malformed or unknown bearer token
    """

    header = request.headers.get("Authorization", "")

    scheme, _, token = header.partition(" ")

    if scheme.lower() != "bearer" or not token.strip():
        raise AuthError("Missing bearer token")

    owner_id = TOKEN_OWNERS.get(token.strip())

    if owner_id is None:
        raise AuthError("Unknown bearer token")

    request.state.owner_id = owner_id

    return owner_id
