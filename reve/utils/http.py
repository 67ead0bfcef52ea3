from __future__ import annotations

from typing import Tuple

from httpx import Response

UPSTREAM_MESSAGE = "Upstream request failed"
UPSTREAM_CODE = "upstream_error"


def extract_http_error(response: Response | None) -> Tuple[str, str]:
    """Return ``(message, code)`` for a failed upstream response.

    Reve answers errors as ``{"error": "<code>", "message": "..."}``, sometimes
    as ``{"error": {"message", "code"}}``, and gateways in front of it as plain
    text.
    """
    if response is None:
        return UPSTREAM_MESSAGE, UPSTREAM_CODE

    try:
        data = response.json()
    except ValueError:
        text = response.text.strip()
        return text or UPSTREAM_MESSAGE, UPSTREAM_CODE

    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        return str(error.get("message") or UPSTREAM_MESSAGE), str(error.get("code") or UPSTREAM_CODE)
    if isinstance(error, str) and error:
        return str(data.get("message") or error), error

    return (str(data) if data not in (None, "") else UPSTREAM_MESSAGE), UPSTREAM_CODE
