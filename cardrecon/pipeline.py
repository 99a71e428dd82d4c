"""
Business Card Contact Pipeline
Turns vision-model output and decoded machine codes into deduplicated contacts.

FLOW (per image):
1. Decode machine-code payloads (vCard / MeCard / URL / text)
2. Parse the vision response (structured JSON, or free text as fallback)
3. Build one record per card, backfilling from contact codes
4. Drop cards without substantial information
5. Deduplicate within the image

A batch runs images on a bounded thread pool, joins all results and
optionally deduplicates across images.
"""

import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .builder import CardRecordBuilder
from .dedup import DEFAULT_SIMILARITY, SimilarityConfig, deduplicate_contacts
from .exceptions import CardEngineError, VisionCallError
from .machine_code import decode_payloads
from .models import BatchResult
from .parser import ContactParser, VisionResponse

logger = logging.getLogger(__name__)


def default_workers() -> int:
    return min(4, os.cpu_count() or 1)


@dataclass
class ImageJob:
    """One image of a batch.

    Attributes:
        source: Display name of the image (file name, upload id)
        response: Vision-model output, if it was fetched already
        machine_codes: Decoded QR/barcode payload strings found on the image
        image: Opaque handle passed to the reader when ``response`` is None
    """
    source: str
    response: Optional[VisionResponse] = None
    machine_codes: Sequence[str] = ()
    image: Any = None


# The external vision call: gets the job, returns the model's text or JSON
Reader = Callable[[ImageJob], VisionResponse]

JobOutcome = Tuple[BatchResult, Optional[str]]


def _elapsed_ms(start: float) -> int:
    return int((time.time() - start) * 1000)


class CardPipeline:
    """Complete pipeline for turning card images' model output into contacts."""

    def __init__(
        self,
        reader: Optional[Reader] = None,
        parser: Optional[ContactParser] = None,
        builder: Optional[CardRecordBuilder] = None,
        similarity: SimilarityConfig = DEFAULT_SIMILARITY,
        max_workers: Optional[int] = None,
        timeout: Optional[float] = None,
        cross_image_dedup: bool = True,
    ):
        self.reader = reader
        self.parser = parser or ContactParser()
        self.builder = builder or CardRecordBuilder()
        self.similarity = similarity
        self.max_workers = max_workers or default_workers()
        self.timeout = timeout or None
        self.cross_image_dedup = cross_image_dedup

        logger.info(
            f"CardPipeline initialized (workers={self.max_workers}, "
            f"timeout={self.timeout}, cross_image_dedup={self.cross_image_dedup})"
        )

    # ======================================================
    # SINGLE IMAGE
    # ======================================================

    def process_response(
        self,
        response: VisionResponse,
        machine_codes: Sequence[str] = (),
        source: str = "image",
    ) -> BatchResult:
        """Run the pure engine on one image's vision output.

        Args:
            response: Vision-model text or decoded JSON
            machine_codes: Decoded QR/barcode payloads of the image
            source: Image name, for logs and error details

        Returns:
            BatchResult for this image

        Raises:
            VisionResponseError: If the response is empty
        """
        start = time.time()

        codes, errors = decode_payloads(list(machine_codes))
        candidates = self.parser.parse_response(response, source)
        cards, card_errors = self.builder.build_all(candidates, codes)
        errors.extend(card_errors)

        dedup = deduplicate_contacts(cards, self.similarity)

        logger.info(
            f"{source}: {len(candidates)} card(s) detected, {len(dedup.unique)} kept, "
            f"{len(codes)} machine code(s)"
        )

        return BatchResult(
            cards=dedup.unique,
            errors=errors,
            machine_codes_found=len(codes),
            total_processed=len(cards),
            merged=dedup.merged,
            processing_time_ms=_elapsed_ms(start),
        )

    def _call_reader(self, job: ImageJob) -> VisionResponse:
        if not self.timeout:
            return self.reader(job)
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="vision-call")
        try:
            return executor.submit(self.reader, job).result(timeout=self.timeout)
        finally:
            # a call that overran keeps its thread; its result is discarded
            executor.shutdown(wait=False)

    def _run_job(self, job: ImageJob, cancel_event: Optional[threading.Event] = None) -> JobOutcome:
        """Fetch (if needed) and process one image; failures become a reason string."""
        if cancel_event is not None and cancel_event.is_set():
            return BatchResult(), "cancelled"

        response = job.response
        if response is None:
            if self.reader is None:
                return BatchResult(), "no vision response and no reader configured"
            try:
                response = self._call_reader(job)
            except FuturesTimeoutError:
                logger.warning(f"Vision call for {job.source} timed out after {self.timeout}s")
                return BatchResult(), f"timed out after {self.timeout}s"
            except Exception as e:
                logger.warning(f"Vision call failed for {job.source}: {e}")
                return BatchResult(), str(e) or type(e).__name__

        try:
            return self.process_response(response, job.machine_codes, job.source), None
        except CardEngineError as e:
            logger.warning(f"Could not process {job.source}: {e.message}")
            return BatchResult(), e.message

    def process_image(self, job: ImageJob) -> BatchResult:
        """Process a single image; a failure becomes one errors[] entry."""
        result, failure = self._run_job(job)
        if failure:
            result.errors.insert(0, f"Processing failed: {failure}")
        return result

    # ======================================================
    # BATCH
    # ======================================================

    def _run_all(self, jobs: List[ImageJob], cancel_event: Optional[threading.Event]) -> List[JobOutcome]:
        with ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(jobs)),
            thread_name_prefix="card-pipeline",
        ) as executor:
            futures = [executor.submit(self._run_job, job, cancel_event) for job in jobs]
            return [future.result() for future in futures]

    def process_batch(
        self,
        jobs: Sequence[ImageJob],
        cancel_event: Optional[threading.Event] = None,
    ) -> BatchResult:
        """Process several images concurrently and join their results.

        Args:
            jobs: Images in submission order
            cancel_event: Set it to skip images whose vision call has not started

        Returns:
            BatchResult with cards and errors in image order

        Raises:
            VisionCallError: If the batch is a single image that failed
                without producing cards
        """
        start = time.time()
        jobs = list(jobs)
        if not jobs:
            return BatchResult()

        outcomes = self._run_all(jobs, cancel_event)
        single = len(jobs) == 1

        cards = []
        errors: List[str] = []
        machine_codes_found = 0
        total_processed = 0
        merged = 0

        for job, (result, failure) in zip(jobs, outcomes):
            if failure:
                errors.append(
                    f"Processing failed: {failure}" if single
                    else f"Failed to process {job.source}: {failure}"
                )
            errors.extend(result.errors)
            cards.extend(result.cards)
            machine_codes_found += result.machine_codes_found
            total_processed += result.total_processed
            merged += result.merged

        if single and outcomes[0][1] and not cards:
            raise VisionCallError(jobs[0].source, outcomes[0][1], errors)

        # join point: every image is done before cross-image dedup
        if self.cross_image_dedup and len(jobs) > 1:
            dedup = deduplicate_contacts(cards, self.similarity)
            cards = dedup.unique
            merged += dedup.merged

        failed = sum(1 for _, failure in outcomes if failure)
        logger.info(
            f"Batch done: {len(jobs)} image(s), {failed} failed, {len(cards)} contact(s), "
            f"{merged} merged"
        )

        return BatchResult(
            cards=cards,
            errors=errors,
            machine_codes_found=machine_codes_found,
            total_processed=total_processed,
            merged=merged,
            processing_time_ms=_elapsed_ms(start),
        )

    # ======================================================
    # STATUS
    # ======================================================

    def get_status(self) -> Dict:
        """Get pipeline status information."""
        return {
            "reader_configured": self.reader is not None,
            "max_workers": self.max_workers,
            "timeout": self.timeout,
            "cross_image_dedup": self.cross_image_dedup,
            "similarity": {
                "threshold": self.similarity.threshold,
                "name_threshold": self.similarity.name_threshold,
                "company_threshold": self.similarity.company_threshold,
            },
        }
