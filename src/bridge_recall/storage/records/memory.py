"""
In-memory record storage implementation.

Suitable for testing and for callers that load records from elsewhere and
only need the recall pipeline over them.
"""

import logging
from typing import Dict, Iterable, List, Optional

from bridge_recall.models import ExperienceRecord

logger = logging.getLogger(__name__)


class InMemoryRecordStore:
    """
    In-memory implementation of the RecordStore protocol.

    Records are kept in insertion order; saving a record with an existing ID
    replaces it in place.
    """

    def __init__(self, records: Optional[Iterable[ExperienceRecord]] = None):
        self._records: Dict[str, ExperienceRecord] = {}
        for record in records or []:
            self._records[record.id] = record

        logger.info(f"InMemoryRecordStore initialized with {len(self._records)} records")

    async def get_all_records(self) -> List[ExperienceRecord]:
        return list(self._records.values())

    async def save_record(self, record: ExperienceRecord) -> None:
        self._records[record.id] = record
        logger.debug(f"Saved record {record.id}")

    async def get_record(self, id: str) -> Optional[ExperienceRecord]:
        return self._records.get(id)
