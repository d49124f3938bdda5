"""Client identification helpers for inbound requests."""

from dataclasses import dataclass

from fastapi import Request

USER_AGENT_MAX_LENGTH = 500
REFERER_MAX_LENGTH = 500
ACCEPT_LANG_MAX_LENGTH = 200


@dataclass(frozen=True)
class RequestMeta:
    user_agent: str
    referer: str
    accept_lang: str


def get_client_ip(request: Request) -> str:
    """Return the originating client IP, honouring ``X-Forwarded-For``."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def get_request_meta(request: Request) -> RequestMeta:
    headers = request.headers
    return RequestMeta(
        user_agent=headers.get("user-agent", "")[:USER_AGENT_MAX_LENGTH],
        referer=(headers.get("referer") or headers.get("origin") or "")[:REFERER_MAX_LENGTH],
        accept_lang=headers.get("accept-language", "")[:ACCEPT_LANG_MAX_LENGTH],
    )
