"""
Tests for CardPipeline class.

Tests per-image processing, batch joining, failure isolation,
timeouts and cancellation at the vision-call boundary.
"""

import json
import threading
from unittest.mock import Mock

import pytest

from cardrecon.exceptions import VisionCallError
from cardrecon.models import ContactCode
from cardrecon.pipeline import CardPipeline, ImageJob


MECARD = "MECARD:N:Doe,John;ORG:Acme;EMAIL:john@acme.com;TEL:+14155551234;;"


def cards_json(*cards) -> str:
    return "```json\n" + json.dumps(list(cards)) + "\n```"


class TestCardPipeline:
    """Test cases for CardPipeline."""

    @pytest.fixture
    def pipeline(self):
        """Create pipeline instance without a reader."""
        return CardPipeline(max_workers=2)

    @pytest.fixture
    def reader(self):
        """Mock vision reader returning one card."""
        return Mock(return_value=cards_json({"name": "Ann Lee", "email": "ann@lee.io"}))

    def test_get_status(self, pipeline):
        """Test status reports the configured settings."""
        status = pipeline.get_status()

        assert status["reader_configured"] is False
        assert status["max_workers"] == 2
        assert status["cross_image_dedup"] is True
        assert status["similarity"]["threshold"] == 0.7

    # =========================
    # SINGLE IMAGE
    # =========================

    def test_process_response_backfills_from_codes(self, pipeline):
        """Test machine-code data fills what the vision output lacks."""
        result = pipeline.process_response(cards_json({"name": "Johnny Doe"}), [MECARD], "card.jpg")

        assert result.machine_codes_found == 1
        assert len(result.cards) == 1
        card = result.cards[0]
        assert card.name == "Johnny Doe"
        assert card.email == "john@acme.com"
        assert card.phones == {"+14155551234"}
        assert isinstance(card.machine_codes[0], ContactCode)

    def test_process_response_drops_empty_card(self, pipeline):
        """Test an address-only card is dropped with an error entry."""
        result = pipeline.process_response(cards_json(
            {"cardNumber": 1, "address": "1 Main Street"},
            {"cardNumber": 2, "name": "Jane Doe", "email": "jane@doe.com"},
        ))

        assert [c.name for c in result.cards] == ["Jane Doe"]
        assert result.errors == ["Card 1 skipped - insufficient information extracted"]

    def test_process_response_dedups_within_image(self, pipeline):
        """Test two detections of the same card merge."""
        result = pipeline.process_response(cards_json(
            {"name": "John Doe", "email": "john@acme.com"},
            {"name": "Jon Doe", "phones": ["+14155551234"]},
        ))

        assert len(result.cards) == 1
        assert result.total_processed == 2
        assert result.merged == 1

    def test_process_image_uses_reader(self, reader):
        """Test the reader is called when no response is attached."""
        pipeline = CardPipeline(reader=reader)
        job = ImageJob(source="a.jpg")
        result = pipeline.process_image(job)

        reader.assert_called_once_with(job)
        assert result.cards[0].name == "Ann Lee"

    def test_process_image_skips_reader_with_response(self, reader):
        """Test an attached response is used as is."""
        pipeline = CardPipeline(reader=reader)
        result = pipeline.process_image(ImageJob(source="a.jpg", response="Bob Stone\nbob@stone.com"))

        reader.assert_not_called()
        assert result.cards[0].email == "bob@stone.com"

    def test_process_image_failure_becomes_error(self):
        """Test a failing vision call yields one error and no cards."""
        pipeline = CardPipeline(reader=Mock(side_effect=RuntimeError("rate limited")))
        result = pipeline.process_image(ImageJob(source="a.jpg"))

        assert result.cards == []
        assert result.errors == ["Processing failed: rate limited"]

    # =========================
    # BATCH
    # =========================

    def test_empty_batch(self, pipeline):
        """Test an empty batch returns an empty result."""
        result = pipeline.process_batch([])
        assert result.cards == []
        assert result.errors == []

    def test_single_image_failure_raises(self):
        """Test a one-image batch that failed without cards raises."""
        pipeline = CardPipeline(reader=Mock(side_effect=RuntimeError("rate limited")))

        with pytest.raises(VisionCallError) as exc_info:
            pipeline.process_batch([ImageJob(source="a.jpg")])

        assert exc_info.value.reason == "rate limited"
        assert exc_info.value.details["errors"] == ["Processing failed: rate limited"]

    def test_failed_image_isolated(self):
        """Test one failing image does not affect the rest of the batch."""

        def reader(job):
            if job.source == "b.jpg":
                raise RuntimeError("rate limited")
            return cards_json({"name": "Ann Lee", "email": "ann@lee.io"})

        pipeline = CardPipeline(reader=reader, max_workers=2)
        result = pipeline.process_batch([ImageJob(source="a.jpg"), ImageJob(source="b.jpg")])

        assert [c.name for c in result.cards] == ["Ann Lee"]
        assert result.errors == ["Failed to process b.jpg: rate limited"]

    def test_empty_response_in_batch(self, pipeline):
        """Test an empty vision response fails only its image."""
        result = pipeline.process_batch([
            ImageJob(source="a.jpg", response=""),
            ImageJob(source="b.jpg", response=cards_json({"name": "Ann Lee"})),
        ])

        assert result.errors == ["Failed to process a.jpg: Empty response from vision model"]
        assert len(result.cards) == 1

    def test_cross_image_dedup(self):
        """Test the same person on two images becomes one contact."""
        jobs = [
            ImageJob(source="a.jpg", response=cards_json({"name": "John Doe", "email": "john@acme.com"})),
            ImageJob(source="b.jpg", response=cards_json({"name": "Jon Doe", "phones": ["+14155551234"]}),
                     machine_codes=[MECARD]),
        ]

        merged = CardPipeline().process_batch(jobs)
        separate = CardPipeline(cross_image_dedup=False).process_batch(jobs)

        assert len(merged.cards) == 1
        assert merged.merged == 1
        assert merged.total_processed == 2
        assert merged.machine_codes_found == 1
        assert len(separate.cards) == 2

    def test_results_keep_image_order(self):
        """Test cards and errors follow submission order."""
        jobs = [
            ImageJob(source=f"{i}.jpg", response=cards_json({"name": f"Person {chr(65 + i)}", "email": f"p{i}@x.com"},
                                                             {"address": "nowhere"}))
            for i in range(5)
        ]
        result = CardPipeline(max_workers=3, cross_image_dedup=False).process_batch(jobs)

        assert [c.email for c in result.cards] == [f"p{i}@x.com" for i in range(5)]
        assert result.errors == ["Card 2 skipped - insufficient information extracted"] * 5

    def test_timeout_at_vision_call(self):
        """Test a vision call that overruns the timeout fails only its image."""
        release = threading.Event()

        def reader(job):
            if job.source == "slow.jpg":
                release.wait(5)
            return cards_json({"name": "Ann Lee", "email": "ann@lee.io"})

        pipeline = CardPipeline(reader=reader, timeout=0.05, max_workers=2)
        try:
            result = pipeline.process_batch([ImageJob(source="slow.jpg"), ImageJob(source="fast.jpg")])
        finally:
            release.set()

        assert result.errors == ["Failed to process slow.jpg: timed out after 0.05s"]
        assert [c.name for c in result.cards] == ["Ann Lee"]

    def test_cancelled_batch(self):
        """Test a set cancel event stops vision calls from starting."""
        reader = Mock(return_value=cards_json({"name": "Ann Lee"}))
        cancel = threading.Event()
        cancel.set()

        pipeline = CardPipeline(reader=reader)
        result = pipeline.process_batch([ImageJob(source="a.jpg"), ImageJob(source="b.jpg")], cancel)

        reader.assert_not_called()
        assert result.cards == []
        assert result.errors == ["Failed to process a.jpg: cancelled", "Failed to process b.jpg: cancelled"]
