"""
JSON file persistence for the repository ports.

The whole store is read once on open and written back after every
committed change. Writes go through a temporary file that replaces the
target, so a crash never leaves a half-written document.
"""

import logging
from pathlib import Path
from typing import Dict, List

from pydantic import BaseModel, Field, ValidationError

from ..domain.entities import (
    Booking,
    Entity,
    GroupBookingRequest,
    Provider,
    ProviderSchedule,
    Service,
)
from ..domain.exceptions import RepositoryError
from .memory import InMemoryStore, PairKey, StoreData

logger = logging.getLogger(__name__)


class IntervalRecord(BaseModel):
    entity_id: str
    service_id: str
    weeks: int = Field(gt=0)


class StoreDocument(BaseModel):
    """On-disk layout of the data file."""
    providers: List[Provider] = Field(default_factory=list)
    services: List[Service] = Field(default_factory=list)
    schedules: List[ProviderSchedule] = Field(default_factory=list)
    entities: List[Entity] = Field(default_factory=list)
    customers: Dict[str, str] = Field(default_factory=dict)
    bookings: List[Booking] = Field(default_factory=list)
    group_bookings: List[GroupBookingRequest] = Field(default_factory=list)
    entity_intervals: List[IntervalRecord] = Field(default_factory=list)
    customer_intervals: List[IntervalRecord] = Field(default_factory=list)

    @classmethod
    def from_data(cls, data: StoreData) -> "StoreDocument":
        return cls(
            providers=list(data.providers.values()),
            services=list(data.services.values()),
            schedules=list(data.schedules.values()),
            entities=list(data.entities.values()),
            customers=dict(data.customers),
            bookings=list(data.bookings.values()),
            group_bookings=list(data.group_bookings.values()),
            entity_intervals=_records(data.entity_intervals),
            customer_intervals=_records(data.customer_intervals),
        )

    def to_data(self) -> StoreData:
        return StoreData(
            providers={p.id: p for p in self.providers},
            services={s.id: s for s in self.services},
            schedules={s.provider_id: s for s in self.schedules},
            entities={e.id: e for e in self.entities},
            customers=dict(self.customers),
            bookings={b.id: b for b in self.bookings},
            group_bookings={g.id: g for g in self.group_bookings},
            entity_intervals={(r.entity_id, r.service_id): r.weeks for r in self.entity_intervals},
            customer_intervals={(r.entity_id, r.service_id): r.weeks for r in self.customer_intervals},
        )


def _records(table: Dict[PairKey, int]) -> List[IntervalRecord]:
    return [
        IntervalRecord(entity_id=entity_id, service_id=service_id, weeks=weeks)
        for (entity_id, service_id), weeks in sorted(table.items())
    ]


class JsonFileStore(InMemoryStore):
    """``InMemoryStore`` backed by a JSON document on disk."""

    def __init__(self, path: Path):
        self.path = Path(path)
        super().__init__(self._load())

    def _load(self) -> StoreData:
        if not self.path.exists():
            logger.info("Data file %s does not exist yet; starting empty", self.path)
            return StoreData()

        try:
            text = self.path.read_text(encoding="utf-8")
            document = StoreDocument.model_validate_json(text or "{}")
        except OSError as exc:
            raise RepositoryError(f"Could not read data file {self.path}: {exc}") from exc
        except ValidationError as exc:
            raise RepositoryError(f"Invalid data file {self.path}: {exc}") from exc

        return document.to_data()

    def _committed(self) -> None:
        self.flush()

    def flush(self) -> None:
        """Write the current state to disk."""
        payload = StoreDocument.from_data(self.data).model_dump_json(indent=2)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload, encoding="utf-8")
            tmp_path.replace(self.path)
        except OSError as exc:
            raise RepositoryError(f"Could not write data file {self.path}: {exc}") from exc

        logger.debug("Saved data file", extra={"path": str(self.path)})
