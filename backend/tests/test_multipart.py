"""
Notecase Backend — Multipart Decoder Unit Tests
=================================================

What:  Tests for the hand-rolled multipart/form-data decoder.
How:   Raw bodies built byte-for-byte with the make_multipart fixture; no HTTP.

What we test:
    ✅ File bytes survive untouched (0x00, 0xFF, embedded CRLFs)
    ✅ Exactly one trailing CRLF is removed per part
    ✅ Last file part wins; empty file parts are ignored
    ✅ Preamble discarded, malformed parts skipped
    ✅ DecodeError for missing boundary, absent delimiter, all-malformed body
    ✅ base64 transport encoding
    ✅ Header parameter parsing (quoted and bare values)
"""

import base64

import pytest

from notecase.exceptions import DecodeError
from notecase.services.multipart import (
    DEFAULT_PART_CONTENT_TYPE,
    decode_multipart,
    extract_boundary,
    is_multipart,
    parse_header_value,
)

from conftest import MULTIPART_BOUNDARY


def field_part(name, value: bytes):
    return ([f'Content-Disposition: form-data; name="{name}"'], value)


def file_part(name, filename, data: bytes, content_type="image/png"):
    headers = [f'Content-Disposition: form-data; name="{name}"; filename="{filename}"']
    if content_type:
        headers.append(f"Content-Type: {content_type}")
    return (headers, data)


class TestDecodeFields:
    """Text fields and their framing."""

    def test_text_fields(self, make_multipart):
        body = make_multipart([field_part("title", b"Shopping"), field_part("content", b"Milk, eggs")])

        form = decode_multipart(body, MULTIPART_BOUNDARY)

        assert form.fields == {"title": "Shopping", "content": "Milk, eggs"}
        assert form.file is None

    def test_only_one_trailing_crlf_is_removed(self, make_multipart):
        """Content that itself ends in blank lines must keep them."""
        body = make_multipart([field_part("content", b"line\r\n\r\n")])

        form = decode_multipart(body, MULTIPART_BOUNDARY)

        assert form.fields["content"] == "line\r\n\r\n"

    def test_empty_field_value(self, make_multipart):
        form = decode_multipart(make_multipart([field_part("title", b"")]), MULTIPART_BOUNDARY)
        assert form.fields == {"title": ""}

    def test_unicode_field(self, make_multipart):
        body = make_multipart([field_part("title", "Café ☕".encode("utf-8"))])
        assert decode_multipart(body, MULTIPART_BOUNDARY).fields["title"] == "Café ☕"

    def test_field_that_is_not_utf8_raises(self, make_multipart):
        body = make_multipart([field_part("title", b"\xff\xfe\x00")])

        with pytest.raises(DecodeError) as exc_info:
            decode_multipart(body, MULTIPART_BOUNDARY)
        assert exc_info.value.context["field"] == "title"

    def test_preamble_is_discarded(self, make_multipart):
        body = make_multipart(
            [field_part("title", b"Hi")],
            preamble=b"This is a multi-part message in MIME format.\r\n",
        )
        assert decode_multipart(body, MULTIPART_BOUNDARY).fields == {"title": "Hi"}

    def test_part_without_name_is_skipped(self, make_multipart):
        body = make_multipart([(["Content-Disposition: form-data"], b"x"), field_part("title", b"T")])
        assert decode_multipart(body, MULTIPART_BOUNDARY).fields == {"title": "T"}

    def test_str_body_is_accepted(self, make_multipart):
        body = make_multipart([field_part("title", b"Plain")]).decode("utf-8")
        assert decode_multipart(body, MULTIPART_BOUNDARY).fields["title"] == "Plain"


class TestDecodeFile:
    """The file payload."""

    def test_binary_bytes_are_preserved(self, make_multipart):
        data = b"\x00\xff" + bytes(range(256)) + b"\r\n\x00\xff\r\n\xff"
        body = make_multipart([field_part("title", b"T"), file_part("file", "blob.bin", data)])

        form = decode_multipart(body, MULTIPART_BOUNDARY)

        assert form.file is not None
        assert form.file.data == data
        assert form.file.file_name == "blob.bin"
        assert form.file.content_type == "image/png"

    def test_last_file_part_wins(self, make_multipart):
        body = make_multipart([
            file_part("file", "first.png", b"first"),
            file_part("file", "second.txt", b"second", content_type="text/plain"),
        ])

        form = decode_multipart(body, MULTIPART_BOUNDARY)

        assert form.file.file_name == "second.txt"
        assert form.file.data == b"second"
        assert form.file.content_type == "text/plain"

    def test_missing_content_type_defaults_to_octet_stream(self, make_multipart):
        body = make_multipart([file_part("file", "a.dat", b"abc", content_type=None)])
        assert decode_multipart(body, MULTIPART_BOUNDARY).file.content_type == DEFAULT_PART_CONTENT_TYPE

    def test_empty_file_input_is_ignored(self, make_multipart):
        """Browsers submit filename="" with no bytes when no file was chosen."""
        body = make_multipart([field_part("title", b"T"), file_part("file", "", b"", content_type=None)])
        assert decode_multipart(body, MULTIPART_BOUNDARY).file is None

    def test_empty_filename_with_content_uses_field_name(self, make_multipart):
        body = make_multipart([file_part("upload", "", b"data")])
        assert decode_multipart(body, MULTIPART_BOUNDARY).file.file_name == "upload"


class TestDecodeErrors:
    """Bodies that cannot be decoded."""

    def test_empty_boundary_raises(self, make_multipart):
        with pytest.raises(DecodeError):
            decode_multipart(make_multipart([field_part("title", b"T")]), "")

    def test_body_without_delimiter_raises(self):
        with pytest.raises(DecodeError):
            decode_multipart(b"title=just+a+urlencoded+body", MULTIPART_BOUNDARY)

    def test_all_parts_malformed_raises(self):
        delimiter = b"--" + MULTIPART_BOUNDARY.encode()
        body = (
            delimiter + b'\r\nContent-Disposition: form-data; name="title"\r\nno blank line\r\n'
            + delimiter + b"--\r\n"
        )
        with pytest.raises(DecodeError):
            decode_multipart(body, MULTIPART_BOUNDARY)

    def test_malformed_part_is_skipped_when_others_decode(self, make_multipart):
        delimiter = b"--" + MULTIPART_BOUNDARY.encode()
        good = make_multipart([field_part("title", b"Kept")])
        body = delimiter + b"\r\nbroken part without separator\r\n" + good

        assert decode_multipart(body, MULTIPART_BOUNDARY).fields == {"title": "Kept"}


class TestTransportEncoding:
    """Bodies a gateway delivered base64-encoded."""

    def test_base64_body_decodes_to_same_form(self, make_multipart):
        data = b"\x00\xff\x10binary"
        raw = make_multipart([field_part("title", b"T"), file_part("file", "x.bin", data)])

        form = decode_multipart(base64.b64encode(raw), MULTIPART_BOUNDARY, base64_encoded=True)

        assert form.fields == {"title": "T"}
        assert form.file.data == data

    def test_invalid_base64_raises(self):
        with pytest.raises(DecodeError):
            decode_multipart(b"not-base64!", MULTIPART_BOUNDARY, base64_encoded=True)


class TestHeaderParsing:
    """Content-Type / Content-Disposition parameter handling."""

    def test_extract_bare_boundary(self):
        assert extract_boundary("multipart/form-data; boundary=XyZ123") == "XyZ123"

    def test_extract_quoted_boundary_among_params(self):
        header = 'multipart/form-data; charset=utf-8; boundary="abc def"'
        assert extract_boundary(header) == "abc def"

    def test_extract_boundary_missing_raises(self):
        with pytest.raises(DecodeError):
            extract_boundary("multipart/form-data")

    def test_extract_boundary_without_header_raises(self):
        with pytest.raises(DecodeError):
            extract_boundary(None)

    def test_parse_header_value(self):
        main, params = parse_header_value('form-data; Name="file"; filename="a b.png"')
        assert main == "form-data"
        assert params == {"name": "file", "filename": "a b.png"}

    @pytest.mark.parametrize(
        "content_type, expected",
        [
            ("multipart/form-data; boundary=x", True),
            ("Multipart/Form-Data; boundary=x", True),
            ("application/json", False),
            ("", False),
            (None, False),
        ],
    )
    def test_is_multipart(self, content_type, expected):
        assert is_multipart(content_type) is expected
