"""
Unit tests for rin.chat.transport and rin.chat.prompts.
"""

import pytest

from rin.chat import ADMIN_SYSTEM_PROMPT, SYSTEM_PROMPT, Transport, build_system_message, split_message
from rin.chat.prompts import MULTI_STEP_HINT
from tests.fakes import RecordingTransport


class TestSplitMessage:
    def test_short_text_is_one_chunk(self):
        assert split_message("hello") == ["hello"]
        assert split_message("") == [""]

    def test_prefers_newline_boundaries(self):
        text = "aaaa\nbbbb\ncccc"
        chunks = split_message(text, limit=10)

        assert chunks == ["aaaa\nbbbb\n", "cccc"]
        assert "".join(chunks) == text

    def test_chunks_never_open_with_newline(self):
        text = "first line\nsecond line\nthird line\nfourth"
        chunks = split_message(text, limit=15)

        assert chunks == ["first line\n", "second line\n", "third line\n", "fourth"]
        assert not any(c.startswith("\n") for c in chunks)

    def test_newline_just_past_limit_is_not_used(self):
        chunks = split_message("aaaa\nbbbbb\ncc", limit=10)

        assert chunks == ["aaaa\n", "bbbbb\ncc"]
        assert all(len(c) <= 10 for c in chunks)

    def test_hard_cut_without_newline(self):
        chunks = split_message("x" * 25, limit=10)
        assert [len(c) for c in chunks] == [10, 10, 5]

    def test_every_chunk_within_limit(self):
        text = "\n".join(f"line {i} " + "y" * (i % 37) for i in range(400))
        chunks = split_message(text, limit=4096)

        assert all(len(c) <= 4096 for c in chunks)
        assert "".join(chunks) == text

    def test_invalid_limit(self):
        with pytest.raises(ValueError):
            split_message("abc", limit=0)


def test_recording_transport_is_a_transport():
    assert isinstance(RecordingTransport(), Transport)


class TestSystemMessage:
    def test_plain_prompt(self):
        assert build_system_message({}, admin=False) == SYSTEM_PROMPT

    def test_admin_prompt_mentions_shell(self):
        content = build_system_message({}, admin=True)
        assert content == ADMIN_SYSTEM_PROMPT
        assert "run_command" in content

    def test_facts_are_listed(self):
        content = build_system_message({"favorite_color": "blue"}, admin=False)

        assert "--- What you know about this user ---" in content
        assert "  - favorite color: blue" in content

    def test_multi_step_hint_is_appended_last(self):
        content = build_system_message({"city": "Lisbon"}, admin=False, multi_step=True)
        assert content.endswith(MULTI_STEP_HINT)
