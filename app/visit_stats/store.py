"""
File-backed visit log.
"""

import json
import logging
from pathlib import Path
from threading import Lock
from typing import Any, Dict

from pydantic import ValidationError

from .models import VisitCollection, VisitRecord

logger = logging.getLogger(__name__)


class VisitLogError(ValueError):
    """The visit log exists but does not hold a visit collection."""


def _stored_counter(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return 0


class VisitStore:
    """Reads and appends to the JSON visit log (``{"totalVisits", "visits"}``)."""

    def __init__(self, visits_file: Path):
        """Initialize the store.

        Args:
            visits_file: Path to the visits JSON file
        """
        self.visits_file = visits_file
        self._lock = Lock()

    def _read_raw(self) -> Dict[str, Any]:
        """Read the log as plain JSON.

        Raises:
            FileNotFoundError: When the log does not exist yet
            VisitLogError: When the JSON is not a visit collection
        """
        with open(self.visits_file, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, dict) or not isinstance(data.get("visits", []), list):
            raise VisitLogError(f"{self.visits_file} does not contain a visit collection")
        return data

    def _parse(self, data: Dict[str, Any]) -> VisitCollection:
        """Validate records one by one so a single odd record cannot hide the rest."""
        visits = []
        for index, item in enumerate(data.get("visits", [])):
            try:
                visits.append(VisitRecord.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping visit #{index} in {self.visits_file}: {e}")
        return VisitCollection(total_visits=_stored_counter(data.get("totalVisits", 0)), visits=visits)

    def load(self) -> VisitCollection:
        """Load the visit collection.

        An unreadable or malformed file yields the empty collection instead of
        an error.
        """
        try:
            data = self._read_raw()
        except FileNotFoundError:
            logger.info(f"Visits file {self.visits_file} not found, using empty collection")
            return VisitCollection.empty()
        except (json.JSONDecodeError, UnicodeDecodeError, OSError, VisitLogError) as e:
            logger.warning(f"Error loading visits from {self.visits_file}: {e}")
            return VisitCollection.empty()
        return self._parse(data)

    def append(self, record: VisitRecord) -> VisitCollection:
        """Append a visit and bump the stored counter.

        Existing records are written back exactly as read. Only a missing file
        starts a new log; any other read failure is raised and the file is left
        untouched.

        Returns:
            The collection as written
        """
        with self._lock:
            try:
                data = self._read_raw()
            except FileNotFoundError:
                data = VisitCollection.empty().to_dict()
            data["totalVisits"] = _stored_counter(data.get("totalVisits", 0)) + 1
            data.setdefault("visits", []).append(record.to_dict())
            self._save(data)
        logger.debug(f"Recorded visit from {record.ip} ({data['totalVisits']} total)")
        return self._parse(data)

    def _save(self, data: Dict[str, Any]) -> None:
        """Write the log atomically."""
        self.visits_file.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.visits_file.with_suffix(".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        tmp_path.replace(self.visits_file)
