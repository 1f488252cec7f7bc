"""Shared helpers for the HTTP model endpoints."""

import httpx

from rfp_assist.rag.errors import InvalidConfiguration


def auth_headers(scheme: str, api_key: str) -> dict[str, str]:
    """Build request headers for an API key.

    ``api-key`` is the Azure OpenAI header, ``bearer`` the OpenAI/Groq one.
    """
    headers = {"Content-Type": "application/json"}
    if not api_key:
        return headers
    if scheme == "api-key":
        headers["api-key"] = api_key
    elif scheme == "bearer":
        headers["Authorization"] = f"Bearer {api_key}"
    else:
        raise InvalidConfiguration(f"Unknown auth scheme: {scheme!r}")
    return headers


def response_detail(response: httpx.Response, limit: int = 300) -> str:
    try:
        body = response.text
    except httpx.ResponseNotRead:
        body = ""
    return f"{response.status_code} {response.reason_phrase} {body[:limit]}".strip()
