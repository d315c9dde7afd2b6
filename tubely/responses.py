"""HTTP response values and JSON helpers."""

from __future__ import annotations

import functools
import json
import logging
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"


@dataclass
class Response:
    """A complete HTTP response."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def status_line(self) -> str:
        """The status code with its reason phrase, as WSGI expects."""
        try:
            phrase = HTTPStatus(self.status).phrase
        except ValueError:
            phrase = "Unknown"
        return f"{self.status} {phrase}"

    def json(self) -> Any:
        """Decode the body as JSON."""
        return json.loads(self.body)


def _encode_default(obj: Any) -> Any:
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def _escape_html(text: str) -> str:
    return (
        text.replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
    )


def json_response(code: int, payload: Any) -> Response:
    """Serialize ``payload`` as compact JSON; a payload that cannot be encoded gives 500."""
    headers = {"Content-Type": JSON_CONTENT_TYPE}
    try:
        text = json.dumps(
            payload,
            default=_encode_default,
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        )
    except (TypeError, ValueError) as exc:
        logger.error("Error marshalling JSON: %s", exc)
        return Response(500, headers)
    return Response(code, headers, _escape_html(text).encode("utf-8"))


def error_response(code: int, msg: str, err: Optional[BaseException]) -> Response:
    """Log ``err`` if given and respond with ``{"error": msg}``."""
    if err is not None:
        logger.info("%s", err)
    if code > 499:
        logger.error("Responding with 5XX error: %s", msg)
    return json_response(code, {"error": msg})


def no_cache(handler: Callable[..., Response]) -> Callable[..., Response]:
    """Wrap a handler so that its responses carry ``Cache-Control: no-store``."""

    @functools.wraps(handler)
    def wrapper(*args: Any, **kwargs: Any) -> Response:
        response = handler(*args, **kwargs)
        response.headers["Cache-Control"] = "no-store"
        return response

    return wrapper