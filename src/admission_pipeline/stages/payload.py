"""Payload decoders: cookies, JSON bodies and URL-encoded bodies."""

from __future__ import annotations

import codecs
import json
import re
from typing import Any
from urllib.parse import parse_qsl

from starlette.requests import ClientDisconnect, cookie_parser

from admission_pipeline.component import AdmissionStage, StageCategory
from admission_pipeline.context import RequestContext
from admission_pipeline.exceptions import (
    MalformedPayload,
    PayloadTooLarge,
    RequestAbandoned,
    UnsupportedCharset,
)

FORM_MEDIA_TYPE = "application/x-www-form-urlencoded"
DEFAULT_MAX_BODY_BYTES = 100 * 1024

_BRACKET_SEGMENT = re.compile(r"\[([^\[\]]*)\]")


def parse_cookies(header: str | None) -> dict[str, str]:
    """Parse a Cookie header into a name -> value mapping."""
    if not header:
        return {}
    return cookie_parser(header)


def _decode_text(raw: bytes, charset: str) -> str:
    # Codecs such as rot13, hex or base64 exist but are not text encodings.
    try:
        if not codecs.lookup(charset)._is_text_encoding:
            raise UnsupportedCharset(charset)
        return raw.decode(charset)
    except LookupError as exc:
        raise UnsupportedCharset(charset) from exc
    except UnicodeDecodeError as exc:
        raise MalformedPayload(f"Request body is not valid {charset}") from exc


def decode_json(raw: bytes, charset: str = "utf-8", *, strict: bool = True) -> Any:
    """Decode a JSON body. An empty body decodes to an empty object.

    In strict mode only objects and arrays are accepted at the top level.
    """
    text = _decode_text(raw, charset)
    if not text.strip():
        return {}
    try:
        value = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedPayload(f"Malformed JSON body: {exc.msg}") from exc
    except RecursionError as exc:
        raise MalformedPayload("Malformed JSON body: nesting too deep") from exc
    if strict and not isinstance(value, (dict, list)):
        raise MalformedPayload("JSON body must be an object or array")
    return value


def _split_key(key: str, depth: int) -> list[str]:
    first = key.find("[")
    if first <= 0:
        return [key]

    segments = [key[:first]]
    pos = first
    while len(segments) - 1 < depth:
        match = _BRACKET_SEGMENT.match(key, pos)
        if match is None:
            break
        segments.append(match.group(1))
        pos = match.end()
    if pos < len(key):
        # Anything past the depth limit stays a single literal key.
        segments.append(key[pos:])
    return segments


def _assign(root: dict[str, Any], segments: list[str], value: str, key: str) -> None:
    node: Any = root
    for index, segment in enumerate(segments[:-1]):
        wants_list = segments[index + 1] == ""
        if isinstance(node, list):
            child: Any = [] if wants_list else {}
            node.append(child)
            node = child
            continue

        child = node.get(segment)
        if child is None:
            child = [] if wants_list else {}
            node[segment] = child
        elif isinstance(child, str):
            if not wants_list:
                raise MalformedPayload(f"Conflicting form field {key!r}")
            child = [child]
            node[segment] = child
        elif isinstance(child, list) != wants_list:
            raise MalformedPayload(f"Conflicting form field {key!r}")
        node = child

    leaf = segments[-1]
    if isinstance(node, list):
        node.append(value)
        return
    existing = node.get(leaf)
    if existing is None:
        node[leaf] = value
    elif isinstance(existing, list):
        existing.append(value)
    elif isinstance(existing, str):
        node[leaf] = [existing, value]
    else:
        raise MalformedPayload(f"Conflicting form field {key!r}")


def decode_urlencoded(
    raw: bytes,
    charset: str = "utf-8",
    *,
    depth: int = 5,
    parameter_limit: int = 1000,
) -> dict[str, Any]:
    """Decode an application/x-www-form-urlencoded body with nested keys.

    ``a[b]=1`` nests, ``a[]=1&a[]=2`` and repeated keys build lists.
    """
    text = _decode_text(raw, charset)
    if not text:
        return {}
    try:
        pairs = parse_qsl(
            text,
            keep_blank_values=True,
            encoding=charset,
            errors="strict",
            max_num_fields=parameter_limit,
        )
    except UnicodeDecodeError as exc:
        raise MalformedPayload(f"Form body is not valid {charset}") from exc
    except ValueError as exc:
        raise PayloadTooLarge("Too many form parameters") from exc

    result: dict[str, Any] = {}
    for key, value in pairs:
        _assign(result, _split_key(key, depth), value, key)
    return result


def _content_type(header: str | None) -> tuple[str, str]:
    if not header:
        return "", "utf-8"
    media_type, _, params = header.partition(";")
    charset = "utf-8"
    for param in params.split(";"):
        name, _, value = param.partition("=")
        if name.strip().lower() == "charset" and value.strip():
            charset = value.strip().strip('"').lower()
    return media_type.strip().lower(), charset


def _is_json(media_type: str) -> bool:
    if media_type == "application/json":
        return True
    return media_type.startswith("application/") and media_type.endswith("+json")


class PayloadDecoder(AdmissionStage):
    """Binds parsed cookies and the decoded request body to the context."""

    category = StageCategory.DECODING

    def __init__(
        self,
        *,
        max_body_bytes: int = DEFAULT_MAX_BODY_BYTES,
        strict_json: bool = True,
        depth: int = 5,
        parameter_limit: int = 1000,
    ) -> None:
        self._max_body_bytes = max_body_bytes
        self._strict_json = strict_json
        self._depth = depth
        self._parameter_limit = parameter_limit

    async def resolve(self, ctx: RequestContext) -> None:
        request = ctx.request
        ctx.cookies = parse_cookies(request.headers.get("cookie"))

        declared = request.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > self._max_body_bytes:
            raise PayloadTooLarge()

        # The body is always read so it is cached for route handlers and the
        # receive channel is drained before any disconnect check.
        try:
            raw = await request.body()
        except ClientDisconnect as exc:
            ctx.abandoned = True
            raise RequestAbandoned() from exc
        if len(raw) > self._max_body_bytes:
            raise PayloadTooLarge()

        media_type, charset = _content_type(request.headers.get("content-type"))
        if _is_json(media_type):
            ctx.body = decode_json(raw, charset, strict=self._strict_json)
        elif media_type == FORM_MEDIA_TYPE:
            ctx.body = decode_urlencoded(
                raw,
                charset,
                depth=self._depth,
                parameter_limit=self._parameter_limit,
            )
        else:
            ctx.body = None
