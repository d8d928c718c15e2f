"""HTTP status mapping for provider requests.

Each vendor's status-code-to-error mapping is part of its contract, so
adapters start from the shared table and override individual codes.
"""

from __future__ import annotations

from collections.abc import Callable
from collections.abc import Mapping

import httpx

from tokenbar.errors.types import ProviderError

StatusMapping = Mapping[int, Callable[[], ProviderError]]

DEFAULT_STATUS_ERRORS: dict[int, Callable[[], ProviderError]] = {
    401: ProviderError.authentication_required,
    403: lambda: ProviderError.network_error("Access forbidden, needs organization access"),
    429: lambda: ProviderError.network_error("Rate limited, try again later"),
}


def error_for_status(
    status_code: int,
    overrides: StatusMapping | None = None,
) -> ProviderError | None:
    """Map an HTTP status code to a ProviderError.

    Returns:
        None for 2xx responses, otherwise the mapped error
    """
    if 200 <= status_code < 300:
        return None

    if overrides and status_code in overrides:
        return overrides[status_code]()

    if factory := DEFAULT_STATUS_ERRORS.get(status_code):
        return factory()

    return ProviderError.network_error(f"HTTP {status_code}")


def check_response(
    response: httpx.Response,
    overrides: StatusMapping | None = None,
) -> None:
    """Raise the mapped ProviderError for a non-2xx response.

    Statuses without a mapping carry the server's own error message.
    """
    status = response.status_code
    if 200 <= status < 300:
        return
    if (overrides and status in overrides) or status in DEFAULT_STATUS_ERRORS:
        raise error_for_status(status, overrides)

    message = extract_error_message(response)
    detail = f"HTTP {status}"
    if message != detail:
        detail = f"{detail}: {message}"
    raise ProviderError.network_error(detail)


def extract_error_message(response: httpx.Response) -> str:
    """Extract a meaningful error message from an HTTP response.

    Args:
        response: HTTP response with error status

    Returns:
        Extracted error message
    """
    status = response.status_code

    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        for key in ("error", "message", "detail", "error_description"):
            if key not in body:
                continue
            value = body[key]
            if isinstance(value, str):
                return value
            if isinstance(value, dict):
                # Some APIs nest the message
                for nested_key in ("message", "description"):
                    if nested_key in value:
                        return str(value[nested_key])

    if body is not None:
        return f"HTTP {status}"

    text = response.text.strip()
    if text and len(text) <= 200:
        return text
    return f"HTTP {status}"
