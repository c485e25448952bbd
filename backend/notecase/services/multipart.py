"""
Notecase Backend — Multipart Form Decoder
===========================================

What:  Turns a raw multipart/form-data body into named text fields and at most
       one file payload.
How:   Pure functions over bytes. No I/O, no global state, no library parser.
Who:   Called by NoteService.decode_request for multipart create/update bodies.

Body layout handled here (the only producer is a browser-style form upload):

    <preamble, discarded>
    --BOUNDARY\\r\\n
    Content-Disposition: form-data; name="title"\\r\\n
    \\r\\n
    My title\\r\\n
    --BOUNDARY\\r\\n
    Content-Disposition: form-data; name="file"; filename="a.png"\\r\\n
    Content-Type: image/png\\r\\n
    \\r\\n
    <raw bytes>\\r\\n
    --BOUNDARY--\\r\\n

Not supported: nested multipart, folded (continuation) header lines,
RFC 2231 `filename*=` parameters, streaming.

The trailing CRLF before each delimiter belongs to the format, not to the
content, and exactly one is removed. File bytes are never passed through a
text codec.
"""

import base64
import binascii
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple, Union

from notecase.exceptions import DecodeError

logger = logging.getLogger(__name__)

CRLF = b"\r\n"
HEADER_SEPARATOR = b"\r\n\r\n"
DEFAULT_PART_CONTENT_TYPE = "application/octet-stream"

# key=value or key="quoted value" after a ';'
_PARAM_PATTERN = re.compile(r';\s*([^\s=;]+)\s*=\s*("[^"]*"|[^;]*)')


@dataclass(frozen=True)
class FilePayload:
    """The single file carried by a form: original name, declared type, raw bytes."""

    file_name: str
    content_type: str
    data: bytes


@dataclass
class DecodedForm:
    """Result of decoding one multipart body. Lives for one request only."""

    fields: Dict[str, str] = field(default_factory=dict)
    file: Optional[FilePayload] = None


def parse_header_value(value: str) -> Tuple[str, Dict[str, str]]:
    """
    Split a header value into its main token and its parameters.

    >>> parse_header_value('form-data; name="file"; filename="a b.png"')
    ('form-data', {'name': 'file', 'filename': 'a b.png'})

    Parameter names are lower-cased; surrounding quotes are removed.
    """
    main, _, rest = value.partition(";")
    params: Dict[str, str] = {}
    for match in _PARAM_PATTERN.finditer(";" + rest):
        raw = match.group(2).strip()
        if len(raw) >= 2 and raw[0] == raw[-1] == '"':
            raw = raw[1:-1]
        params[match.group(1).lower()] = raw
    return main.strip().lower(), params


def is_multipart(content_type: Optional[str]) -> bool:
    """True when a Content-Type header declares multipart/form-data."""
    if not content_type:
        return False
    media_type, _ = parse_header_value(content_type)
    return media_type == "multipart/form-data"


def extract_boundary(content_type: Optional[str]) -> str:
    """
    Read the boundary token from a multipart Content-Type header.

    Raises:
        DecodeError: header absent or without a non-empty boundary parameter.
    """
    if not content_type:
        raise DecodeError(message="Missing Content-Type header for multipart body")
    _, params = parse_header_value(content_type)
    boundary = params.get("boundary", "")
    if not boundary:
        raise DecodeError(
            message="Multipart Content-Type header has no boundary parameter",
            context={"content_type": content_type},
        )
    return boundary


def reverse_transport_encoding(body: Union[bytes, str], base64_encoded: bool) -> bytes:
    if isinstance(body, str):
        body = body.encode("utf-8")
    if not base64_encoded:
        return body
    try:
        return base64.b64decode(body)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(
            message="Request body is flagged as base64 but is not valid base64",
            context={"error": str(e)},
        ) from e


def _parse_part_headers(block: bytes) -> Dict[str, str]:
    headers: Dict[str, str] = {}
    for raw_line in block.split(CRLF):
        line = raw_line.decode("utf-8", errors="replace").strip()
        if not line:
            continue
        name, sep, value = line.partition(":")
        if not sep:
            continue
        headers[name.strip().lower()] = value.strip()
    return headers


def decode_multipart(
    body: Union[bytes, str],
    boundary: str,
    base64_encoded: bool = False,
) -> DecodedForm:
    """
    Decode a multipart/form-data body.

    Args:
        body: The raw request body (str bodies are UTF-8 encoded first).
        boundary: Boundary token from the Content-Type header.
        base64_encoded: True when the transport base64-encoded the body.

    Returns:
        DecodedForm with text fields and, if any part carried a filename,
        the file payload. When several parts carry a filename the last one
        in the body wins.

    Raises:
        DecodeError: no boundary, no delimiter in the body, or every part
        malformed (no blank line between headers and content), or a text
        field that is not valid UTF-8.
    """
    if not boundary:
        raise DecodeError(message="Multipart boundary is missing")

    raw = reverse_transport_encoding(body, base64_encoded)
    try:
        delimiter = b"--" + boundary.encode("ascii")
    except UnicodeEncodeError as e:
        raise DecodeError(
            message="Multipart boundary must be ASCII",
            context={"boundary": boundary},
        ) from e

    chunks = raw.split(delimiter)
    if len(chunks) < 2:
        raise DecodeError(
            message="Request body does not contain the multipart boundary",
            context={"boundary": boundary, "body_size": len(raw)},
        )

    form = DecodedForm()
    decoded = 0
    malformed = 0

    # chunks[0] is the preamble before the first delimiter
    for chunk in chunks[1:]:
        if not chunk:
            continue
        if chunk.startswith(b"--"):
            # closing delimiter; anything after it is epilogue
            break

        separator_at = chunk.find(HEADER_SEPARATOR)
        if separator_at == -1:
            malformed += 1
            logger.debug("Skipping multipart part without header separator (%d bytes)", len(chunk))
            continue

        headers = _parse_part_headers(chunk[:separator_at])
        content = chunk[separator_at + len(HEADER_SEPARATOR):]
        if content.endswith(CRLF):
            content = content[: -len(CRLF)]

        _, disposition = parse_header_value(headers.get("content-disposition", ""))
        name = disposition.get("name")
        if not name:
            logger.debug("Skipping multipart part without a field name")
            continue

        file_name = disposition.get("filename")
        if file_name is not None:
            if not file_name and not content:
                # browsers send an empty file part when nothing was selected
                continue
            form.file = FilePayload(
                file_name=file_name or name,
                content_type=headers.get("content-type") or DEFAULT_PART_CONTENT_TYPE,
                data=content,
            )
        else:
            try:
                form.fields[name] = content.decode("utf-8")
            except UnicodeDecodeError as e:
                raise DecodeError(
                    message=f"Form field '{name}' is not valid UTF-8 text",
                    context={"field": name},
                ) from e
        decoded += 1

    if malformed and not decoded:
        raise DecodeError(
            message="No well-formed parts found in multipart body",
            context={"malformed_parts": malformed},
        )

    logger.debug(
        "Decoded multipart body: %d field(s), file=%s, %d malformed part(s) skipped",
        len(form.fields),
        form.file.file_name if form.file else None,
        malformed,
    )
    return form
