"""Tests for imap_zip_extractor.models."""

from __future__ import annotations

import hashlib
from unittest.mock import patch

import pytest

from imap_zip_extractor.errors import ConfigurationError
from imap_zip_extractor.models import FetchedMessage, message_digest

from tests.conftest import RECEIVED


class TestMessageDigest:
    def test_is_sha1_hex_of_received_date(self):
        assert message_digest(RECEIVED) == hashlib.sha1(RECEIVED.encode()).hexdigest()

    def test_stable(self):
        assert message_digest(RECEIVED) == message_digest(RECEIVED)

    def test_differs_per_date(self):
        assert message_digest(RECEIVED) != message_digest("02-Jun-2025 12:00:00 +0000")

    def test_algorithm_unavailable(self):
        with patch("imap_zip_extractor.models.hashlib.new", side_effect=ValueError("unsupported")):
            with pytest.raises(ConfigurationError):
                message_digest(RECEIVED)


class TestFetchedMessage:
    def test_parse(self, zip_eml_bytes: bytes):
        msg = FetchedMessage(uid="1", received=RECEIVED, raw_bytes=zip_eml_bytes).parse()
        assert msg["Subject"] == "Daily export"
        assert msg.is_multipart()
        assert [p.get_filename() for p in msg.iter_attachments()] == ["archive.zip"]
