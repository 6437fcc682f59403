"""HTTP transport used by the gateway. One instance is shared by all calls."""

from __future__ import annotations

import http.client
import json
import ssl
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol
from urllib import error, parse, request

from rest_tools.tools.binding import to_text
from rest_tools.tools.errors import TransportError


@dataclass(frozen=True)
class TransportResponse:
    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Any = None
    reason: str = ""


class HttpTransport(Protocol):
    """Send one request. Must be safe for concurrent use."""

    def send(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str],
        query: Mapping[str, Any],
        body: Any = None,
        timeout_s: float,
    ) -> TransportResponse: ...


class UrllibTransport:
    """Transport over ``urllib.request``; no retries, one timeout for every request."""

    def __init__(self, *, verify_tls: bool = True) -> None:
        self.verify_tls = verify_tls
        self._ssl_context: ssl.SSLContext | None = None
        if not verify_tls:
            self._ssl_context = ssl.create_default_context()
            self._ssl_context.check_hostname = False
            self._ssl_context.verify_mode = ssl.CERT_NONE

    def send(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str],
        query: Mapping[str, Any],
        body: Any = None,
        timeout_s: float,
    ) -> TransportResponse:
        request_headers = {"Accept": "application/json", **headers}
        data = _encode_body(body, request_headers)
        req = request.Request(
            url=with_query(url, query),
            data=data,
            method=method,
            headers=request_headers,
        )
        options: dict[str, Any] = {"timeout": timeout_s}
        if self._ssl_context is not None:
            options["context"] = self._ssl_context

        try:
            with request.urlopen(req, **options) as response:
                raw_body = response.read()
                status = int(response.status)
                reason = str(getattr(response, "reason", "") or "")
                response_headers = _lower_headers(response.headers)
        except error.HTTPError as exc:
            error_body = decode_body(exc.read())
            raise TransportError(
                http_error_message(exc.code, str(exc.reason or ""), error_body),
                status_code=exc.code,
                body=error_body,
                headers=_lower_headers(exc.headers),
            ) from exc
        except TimeoutError as exc:
            raise TransportError("Request timeout") from exc
        except error.URLError as exc:
            if isinstance(exc.reason, TimeoutError):
                raise TransportError("Request timeout") from exc
            raise TransportError(
                f"Network error: Unable to reach the server ({exc.reason})"
            ) from exc
        except (OSError, http.client.HTTPException) as exc:
            # Raised while reading the response; urllib does not wrap these.
            raise TransportError(f"Network error: Unable to reach the server ({exc})") from exc

        return TransportResponse(
            status=status,
            headers=response_headers,
            body=decode_body(raw_body),
            reason=reason,
        )


def with_query(url: str, query: Mapping[str, Any]) -> str:
    pairs: list[tuple[str, str]] = []
    for key, value in query.items():
        if isinstance(value, list):
            pairs.extend((key, to_text(item)) for item in value)
        else:
            pairs.append((key, to_text(value)))
    if not pairs:
        return url
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{parse.urlencode(pairs)}"


def decode_body(raw: bytes | None) -> Any:
    """JSON when parseable, raw text otherwise, ``None`` when empty."""
    if not raw:
        return None
    text = raw.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def http_error_message(status: int, reason: str, body: Any) -> str:
    message = f"HTTP {status}: {reason}".rstrip(": ")
    if isinstance(body, dict):
        detail = body.get("error") or body.get("message")
        if detail:
            message += f" - {detail if isinstance(detail, str) else to_text(detail)}"
    return message


def _encode_body(body: Any, headers: dict[str, str]) -> bytes | None:
    if body is None:
        return None
    if isinstance(body, bytes):
        return body
    if isinstance(body, str):
        return body.encode("utf-8")
    if not any(name.lower() == "content-type" for name in headers):
        headers["Content-Type"] = "application/json"
    return json.dumps(body).encode("utf-8")


def _lower_headers(headers: Any) -> dict[str, str]:
    if headers is None:
        return {}
    return {str(name).lower(): str(value) for name, value in headers.items()}
