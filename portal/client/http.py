from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0


@dataclass(frozen=True)
class UploadFile:
    name: str
    content: bytes
    mime_type: str

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class HttpResponse:
    status_code: int
    body: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def error_message(self, default: str) -> str:
        if isinstance(self.body, dict):
            message = self.body.get("error")
            if isinstance(message, str) and message.strip():
                return message
        return default


class TransportError(Exception):
    """The request never produced an HTTP response."""


FileParts = Sequence[tuple[str, UploadFile]]


class HttpClient(Protocol):
    def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        data: dict[str, str] | None = None,
        files: FileParts | None = None,
    ) -> HttpResponse: ...


def decode_body(content: bytes, content_type: str | None, parse_json) -> Any:
    if not content:
        return None
    if content_type and "json" in content_type:
        try:
            return parse_json()
        except ValueError:
            logger.debug("Response declared JSON but did not parse")
    return content.decode("utf-8", errors="replace")


class RequestsHttpClient:
    """``HttpClient`` backed by a ``requests.Session`` that keeps the login cookie."""

    def __init__(
        self,
        base_url: str,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        data: dict[str, str] | None = None,
        files: FileParts | None = None,
    ) -> HttpResponse:
        url = f"{self.base_url}/{path.lstrip('/')}"
        multipart = None
        if files:
            multipart = [(field, (f.name, f.content, f.mime_type)) for field, f in files]
        try:
            resp = self.session.request(
                method.upper(),
                url,
                json=json,
                data=data,
                files=multipart,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("%s %s failed: %s", method.upper(), url, exc)
            raise TransportError(str(exc)) from exc
        return HttpResponse(resp.status_code, decode_body(resp.content, resp.headers.get("Content-Type"), resp.json))

    def close(self) -> None:
        self.session.close()
