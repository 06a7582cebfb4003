"""Tests for the integrity digest and verifier."""
import re

import pytest

from rapidup.services.integrity import digest, digest_file, verify, verify_async


class TestDigest:
    def test_known_value_single_byte(self):
        # h1=0x61, h2 folds "salt1" after the data, h3 folds "salt21", checksum 0xc2
        expected = "61ac085edad5037cb6c2".ljust(64, "0")
        assert digest(b"a") == expected

    def test_is_64_lowercase_hex(self):
        value = digest(b"hello world" * 100)
        assert len(value) == 64
        assert re.fullmatch(r"[0-9a-f]{64}", value)

    def test_deterministic(self):
        data = bytes(range(256)) * 10
        assert digest(data) == digest(bytes(data))
        assert digest(data) == digest(bytearray(data))

    def test_short_concatenation_is_right_padded(self):
        # four 32-bit values render to at most 32 hex chars
        value = digest(b"\x00\x01\x02")
        assert value.endswith("0" * 32)

    def test_empty_input(self):
        value = digest(b"")
        assert len(value) == 64
        # h1 of nothing is 0
        assert value.startswith("0")

    def test_length_changes_digest(self):
        assert digest(b"\x00") != digest(b"\x00\x00")
        assert digest(b"abc") != digest(b"abcd")

    def test_checksum_is_last_component(self):
        # two bytes: h1 = 31 * 1 + 3 = 0x22, checksum = rotl(rotl(1) ^ 3) = 0x2
        value = digest(b"\x01\x03").rstrip("0")
        assert value.startswith("22")
        assert value.endswith("2")


class TestVerify:
    def test_match(self):
        data = b"payload"
        result = verify(data, len(data), digest(data))
        assert result.verified is True
        assert result.detail is None
        assert result.local_digest == digest(data)

    def test_remote_digest_case_insensitive(self):
        data = b"payload"
        assert verify(data, len(data), digest(data).upper()).verified is True

    def test_size_mismatch_skips_digest(self, monkeypatch):
        calls = []
        monkeypatch.setattr(
            "rapidup.services.integrity.digest",
            lambda data: calls.append(data) or "x" * 64,
        )
        result = verify(b"12345", 4, "whatever")
        assert result.verified is False
        assert result.detail == "Size mismatch: 5 vs 4"
        assert calls == []

    def test_hash_mismatch(self):
        data = b"payload"
        result = verify(data, len(data), "0" * 64)
        assert result.verified is False
        assert result.detail.startswith("Hash mismatch")
        assert result.remote_digest == "0" * 64

    def test_size_as_string(self):
        data = b"payload"
        assert verify(data, str(len(data)), digest(data)).verified is True

    def test_invalid_size(self):
        result = verify(b"abc", "three", digest(b"abc"))
        assert result.verified is False
        assert "Invalid remote size" in result.detail


class TestAsyncHelpers:
    @pytest.mark.asyncio
    async def test_digest_file(self, tmp_path):
        test_file = tmp_path / "test.bin"
        test_file.write_bytes(b"hello world")

        result = await digest_file(test_file)

        assert result == digest(b"hello world")

    @pytest.mark.asyncio
    async def test_verify_async(self):
        data = b"x" * 1000
        result = await verify_async(data, 1000, digest(data))
        assert result.verified is True
