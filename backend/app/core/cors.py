"""Explicit cross-origin headers for endpoints called from the browser."""

from __future__ import annotations

from starlette.requests import Request


def cors_headers(request: Request, allowed_origins: list[str], *, methods: str, headers: str) -> dict[str, str]:
    # Allow-Origin takes a single value, so echo the caller when it is listed.
    origin = (request.headers.get("origin") or "").strip()
    if "*" in allowed_origins:
        allow_origin = "*"
    elif origin and origin in allowed_origins:
        allow_origin = origin
    else:
        allow_origin = allowed_origins[0] if allowed_origins else "null"
    result = {
        "Access-Control-Allow-Origin": allow_origin,
        "Access-Control-Allow-Methods": methods,
        "Access-Control-Allow-Headers": headers,
    }
    if allow_origin != "*":
        result["Vary"] = "Origin"
    return result
