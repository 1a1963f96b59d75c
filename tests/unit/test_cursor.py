"""Tests for opaque cursor encoding."""

import base64

import pytest

from pg_graphql.cursor import decode_cursor, encode_cursor, split_cursor
from pg_graphql.errors import CursorDecodeError, ExecuteError


class TestEncodeCursor:
    def test_matches_jsonb_text_rendering(self):
        token = encode_cursor("public.account", [3])

        assert base64.b64decode(token).decode("utf-8") == '["public.account", 3]'

    def test_is_deterministic(self):
        assert encode_cursor("public.account", [3]) == encode_cursor("public.account", (3,))

    def test_non_ascii_text_is_not_escaped(self):
        token = encode_cursor("public.tag", ["café"])

        assert base64.b64decode(token).decode("utf-8") == '["public.tag", "café"]'


class TestDecodeCursor:
    @pytest.mark.parametrize(
        "key",
        [
            (1,),
            (9_007_199_254_740_993,),
            ("3f2b8c1e-8f5e-4c1a-9d8e-2a5b7c9e1f00",),
            (1, "en"),
            (1.5,),
            (True,),
        ],
    )
    def test_round_trip(self, key):
        identity, decoded = split_cursor(encode_cursor("public.thing", key))

        assert identity == "public.thing"
        assert decoded == key

    def test_returns_identity_then_key(self):
        assert decode_cursor(encode_cursor("s.t", [1, 2])) == ["s.t", 1, 2]

    def test_rejects_invalid_base64(self):
        with pytest.raises(CursorDecodeError):
            decode_cursor("not base64!!")

    def test_rejects_invalid_json(self):
        token = base64.b64encode(b"[not json").decode()

        with pytest.raises(CursorDecodeError):
            decode_cursor(token)

    @pytest.mark.parametrize("payload", [b"{}", b"[]", b"[1, 2]", b'"public.account"'])
    def test_rejects_wrong_shape(self, payload):
        with pytest.raises(CursorDecodeError):
            decode_cursor(base64.b64encode(payload).decode())

    def test_decode_error_is_an_execute_error(self):
        with pytest.raises(ExecuteError):
            decode_cursor("%%%")
