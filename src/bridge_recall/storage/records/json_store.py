"""
File-backed record storage.

Records live in a single JSON document of the form ``{"records": [...]}``.
The file is read on every load so external edits are picked up, and each
save rewrites it through a temporary file and an atomic rename.
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import List, Optional, Union

from bridge_recall.models import ExperienceRecord

logger = logging.getLogger(__name__)


class JSONRecordStore:
    """JSON file implementation of the RecordStore protocol."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._write_lock = asyncio.Lock()

    def _load(self) -> List[ExperienceRecord]:
        if not self.path.exists():
            return []
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        items = data.get("records", []) if isinstance(data, dict) else data
        return [ExperienceRecord.model_validate(item) for item in items]

    def _save(self, records: List[ExperienceRecord]):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"records": [r.model_dump(mode="json", exclude_none=True) for r in records]}
        temp_path = self.path.with_name(f"{self.path.name}.tmp")
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
        os.replace(temp_path, self.path)

    async def get_all_records(self) -> List[ExperienceRecord]:
        records = await asyncio.to_thread(self._load)
        logger.debug(f"Loaded {len(records)} records from {self.path}")
        return records

    async def save_record(self, record: ExperienceRecord) -> None:
        async with self._write_lock:
            records = await asyncio.to_thread(self._load)
            for index, existing in enumerate(records):
                if existing.id == record.id:
                    records[index] = record
                    break
            else:
                records.append(record)
            await asyncio.to_thread(self._save, records)

        logger.debug(f"Saved record {record.id} to {self.path}")

    async def get_record(self, id: str) -> Optional[ExperienceRecord]:
        for record in await self.get_all_records():
            if record.id == id:
                return record
        return None
