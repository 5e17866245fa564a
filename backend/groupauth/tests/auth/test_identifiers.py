"""Tests for token, public key, and handle generation."""

from __future__ import annotations

import re
from unittest.mock import patch

import pytest

from groupauth.auth.identifiers import (
    HANDLE_MAX_LENGTH,
    HANDLE_PATTERN,
    generate_public_key,
    generate_session_token,
    generate_unique_handle,
    generate_username,
    is_valid_handle,
    make_unique,
    make_unique_public_key,
    make_unique_slug,
    new_token,
    random_slug,
    slugify,
)
from groupauth.errors import GenerationExhaustedError

URLSAFE = re.compile(r"^[A-Za-z0-9_-]+$")


class TestTokens:
    def test_session_token_shape(self):
        token = generate_session_token()
        assert len(token) == 43
        assert URLSAFE.match(token)

    def test_public_key_shape(self):
        key = generate_public_key()
        assert len(key) == 22
        assert URLSAFE.match(key)

    def test_new_token_has_no_padding(self):
        assert "=" not in new_token(16)
        assert "=" not in new_token(32)

    def test_thousand_public_keys_are_unique(self):
        keys = {generate_public_key() for _ in range(1000)}
        assert len(keys) == 1000

    def test_thousand_session_tokens_are_unique(self):
        tokens = {generate_session_token() for _ in range(1000)}
        assert len(tokens) == 1000


class TestMakeUnique:
    async def test_returns_first_unused_value(self):
        taken = {"a", "b"}
        values = iter(["a", "b", "c"])
        result = await make_unique(lambda: next(values), lambda v: v in taken, 10)
        assert result == "c"

    async def test_accepts_async_predicate(self):
        async def exists(value: str) -> bool:
            return value == "taken"

        values = iter(["taken", "free"])
        assert await make_unique(lambda: next(values), exists, 5) == "free"

    async def test_exhausted_when_predicate_always_true(self):
        calls = 0

        def always_taken(_value: str) -> bool:
            nonlocal calls
            calls += 1
            return True

        with pytest.raises(GenerationExhaustedError):
            await make_unique_public_key(always_taken, max_attempts=1000)
        assert calls == 1000

    async def test_predicate_error_propagates(self):
        def broken(_value: str) -> bool:
            raise RuntimeError("db down")

        with pytest.raises(RuntimeError, match="db down"):
            await make_unique_public_key(broken)


class TestSlugify:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("Climate Action Team", "climate-action-team"),
            ("Café Société", "cafe-societe"),
            ("  --Hello!!  World--  ", "hello-world"),
            ("Ünïcödé Nämé", "unicode-name"),
            ("a_b.c", "a-b-c"),
        ],
    )
    def test_derives_slug(self, name, expected):
        assert slugify(name) == expected

    @pytest.mark.parametrize("name", ["", "a", "!!", "日本語", "é"])
    def test_degenerate_names_return_empty(self, name):
        assert slugify(name) == ""

    def test_truncates_and_retrims(self):
        name = "a" * 99 + " b"
        slug = slugify(name)
        assert slug == "a" * 99
        assert len(slug) <= HANDLE_MAX_LENGTH

    def test_results_match_handle_pattern(self):
        for name in ["Team Rocket", "R&D Group 2024", "x-y-z"]:
            assert HANDLE_PATTERN.match(slugify(name))


class TestGenerateUsername:
    def test_uses_slug_when_usable(self):
        assert generate_username("Jane Doe") == "jane-doe"

    def test_falls_back_to_random_slug(self):
        with patch("groupauth.auth.identifiers.random_slug", return_value="abcd1234") as mock_random:
            assert generate_username("李") == "abcd1234"
        mock_random.assert_called_once()

    def test_random_slug_shape(self):
        slug = random_slug(8)
        assert len(slug) == 8
        assert re.match(r"^[0-9a-f]{8}$", slug)


class TestMakeUniqueSlug:
    async def test_returns_base_when_free(self):
        assert await make_unique_slug("team", lambda _: False) == "team"

    async def test_appends_numeric_suffix(self):
        taken = {"team", "team-1", "team-2"}
        assert await make_unique_slug("team", taken.__contains__) == "team-3"

    async def test_truncates_base_to_fit_suffix(self):
        base = "a" * HANDLE_MAX_LENGTH
        result = await make_unique_slug(base, lambda v: v == base)
        assert result == "a" * (HANDLE_MAX_LENGTH - 2) + "-1"
        assert len(result) == HANDLE_MAX_LENGTH

    async def test_truncation_does_not_leave_double_hyphen(self):
        base = "a" * 97 + "-bc"
        result = await make_unique_slug(base, lambda v: v == base)
        assert "--" not in result
        assert is_valid_handle(result)

    async def test_gives_up_after_bounded_attempts(self):
        calls = 0

        def always_taken(_value: str) -> bool:
            nonlocal calls
            calls += 1
            return True

        with pytest.raises(GenerationExhaustedError):
            await make_unique_slug("team", always_taken)
        assert calls == 1001


class TestHandles:
    @pytest.mark.parametrize("handle", ["abc", "team-1", "a1-b2-c3"])
    def test_valid_handles(self, handle):
        assert is_valid_handle(handle)

    @pytest.mark.parametrize("handle", ["ab", "-abc", "abc-", "ABC", "a_b_c", "a" * 101])
    def test_invalid_handles(self, handle):
        assert not is_valid_handle(handle)

    async def test_generate_unique_handle(self):
        assert await generate_unique_handle("My Group", lambda h: h == "my-group") == "my-group-1"

    async def test_generate_unique_handle_empty_for_short_name(self):
        assert await generate_unique_handle("X", lambda _: False) == ""
