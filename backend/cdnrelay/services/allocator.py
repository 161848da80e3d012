from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from typing import Callable, Union

from cdnrelay.core.errors import DuplicateShortName
from cdnrelay.core.store import FileStore
from cdnrelay.models.file_record import FileRecord
from cdnrelay.monitoring.setup import report_collision

logger = logging.getLogger("cdn-relay")

ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"
MAX_ATTEMPTS = 10
WIDEN_AFTER = 5
WIDENED_LENGTH = 8


def random_stem(length: int) -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(length))


@dataclass(frozen=True)
class Allocated:
    record: FileRecord
    attempts: int

    @property
    def short_name(self) -> str:
        return self.record.filename


@dataclass(frozen=True)
class Exhausted:
    attempts: int


AllocationResult = Union[Allocated, Exhausted]


class ShortNameAllocator:
    """Picks a random short name and claims it by inserting the record.

    Attempts ``1..WIDEN_AFTER`` draw ``length`` characters, later attempts
    draw ``WIDENED_LENGTH``. A UNIQUE collision moves on to the next attempt;
    any other store error propagates unchanged.
    """

    def __init__(
        self,
        store: FileStore,
        length: int = 6,
        max_attempts: int = MAX_ATTEMPTS,
        stem_factory: Callable[[int], str] = random_stem,
    ):
        self.store = store
        self.length = length
        self.max_attempts = max_attempts
        self.stem_factory = stem_factory

    def stem_length(self, attempt: int) -> int:
        return self.length if attempt <= WIDEN_AFTER else max(self.length, WIDENED_LENGTH)

    async def allocate(self, extension: str, make_record: Callable[[str], FileRecord]) -> AllocationResult:
        for attempt in range(1, self.max_attempts + 1):
            short_name = f"{self.stem_factory(self.stem_length(attempt))}{extension}"
            try:
                record = await self.store.insert(make_record(short_name))
            except DuplicateShortName:
                report_collision()
                logger.warning("Filename collision detected. Retry %s/%s...", attempt, self.max_attempts)
                continue
            return Allocated(record=record, attempts=attempt)

        logger.error("Failed to allocate a short name after %s attempts", self.max_attempts)
        return Exhausted(attempts=self.max_attempts)
