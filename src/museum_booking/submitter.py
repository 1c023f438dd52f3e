"""Bulk submission of parsed booking records.

Every record becomes one ``POST /appointments``. Requests are released in input
order with a fixed stagger, run concurrently up to ``max_concurrency``, and the
batch completes only once every request has succeeded or failed. Failures are
recorded per record; nothing is rolled back.
"""

import asyncio
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from museum_booking.duplicates import ensure_unique
from museum_booking.errors import BookingError, TransientError
from museum_booking.logging import batch_context, get_logger
from museum_booking.models import BookingOutcome, BookingRecord

if TYPE_CHECKING:
    from museum_booking.api import ApiClient

logger = get_logger(__name__)


@dataclass
class BulkResult:
    """Per-record outcomes of one batch, in input order."""

    outcomes: list[BookingOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> list[BookingOutcome]:
        return [o for o in self.outcomes if o.success]

    @property
    def failed(self) -> list[BookingOutcome]:
        return [o for o in self.outcomes if not o.success]

    @property
    def all_succeeded(self) -> bool:
        return not self.failed


class BulkSubmitter:
    """Submits a duplicate-free batch of records to the ticketing API.

    Args:
        client: ApiClient used for ``create_appointment``. It is synchronous, so
            each call runs in a worker thread.
        stagger_seconds: Delay between successive request releases.
        max_concurrency: Maximum number of requests in flight at once.
        max_attempts: Attempts per record; only TransientError is retried.
        on_progress: Called with (done, total) as each record resolves.
        on_complete: Called with the BulkResult once every record has resolved.
    """

    def __init__(
        self,
        client: "ApiClient",
        *,
        stagger_seconds: float = 0.025,
        max_concurrency: int = 10,
        max_attempts: int = 1,
        on_progress: Callable[[int, int], Any] | None = None,
        on_complete: Callable[[BulkResult], Any] | None = None,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.client = client
        self.stagger_seconds = stagger_seconds
        self.max_concurrency = max_concurrency
        self.max_attempts = max_attempts
        self.on_progress = on_progress
        self.on_complete = on_complete

    async def submit(self, records: list[BookingRecord]) -> BulkResult:
        """Submit every record and wait for all of them.

        Raises:
            DuplicateBookingError: If the batch repeats an (id number, visit date)
                pair. No request is made in that case.
        """
        ensure_unique(records)

        total = len(records)
        semaphore = asyncio.Semaphore(self.max_concurrency)
        done = 0

        async def run(index: int, record: BookingRecord) -> BookingOutcome:
            nonlocal done
            outcome = await self._submit_one(index, record, semaphore)
            done += 1
            if self.on_progress is not None:
                self.on_progress(done, total)
            return outcome

        with batch_context(batch_id=uuid.uuid4().hex[:8]):
            logger.info(
                "bulk_submit_started",
                records=total,
                max_concurrency=self.max_concurrency,
                stagger_ms=int(self.stagger_seconds * 1000),
            )
            outcomes = await asyncio.gather(
                *(run(index, record) for index, record in enumerate(records))
            )
            result = BulkResult(outcomes=list(outcomes))
            logger.info(
                "bulk_submit_finished",
                records=total,
                succeeded=len(result.succeeded),
                failed=len(result.failed),
            )

        if self.on_complete is not None:
            self.on_complete(result)
        return result

    async def _submit_one(
        self, index: int, record: BookingRecord, semaphore: asyncio.Semaphore
    ) -> BookingOutcome:
        await asyncio.sleep(index * self.stagger_seconds)
        async with semaphore:
            try:
                body = await self._create(record)
            except BookingError as e:
                logger.warning(
                    "booking_failed",
                    index=index,
                    id_number=record.id_number,
                    error=str(e),
                    type=type(e).__name__,
                )
                return BookingOutcome.from_error(record, e)

        outcome = BookingOutcome.from_response(record, body)
        logger.info(
            "booking_succeeded",
            index=index,
            id_number=record.id_number,
            booking_id=outcome.booking_id,
        )
        return outcome

    async def _create(self, record: BookingRecord) -> Any:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=0.5, max=8),
            retry=retry_if_exception_type(TransientError),
            reraise=True,
        ):
            with attempt:
                return await asyncio.to_thread(self.client.create_appointment, record)
