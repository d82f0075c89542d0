from datetime import datetime
from enum import Enum

from pydantic import BaseModel

from tripsearch.errors import FailureKind
from tripsearch.schemas.offer import Offer


class AttemptState(str, Enum):
    PENDING = "pending"
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SYNTHETIC = "synthetic"
    DONE = "done"


class AttemptRecord(BaseModel):
    provider: str
    state: AttemptState
    offers: int = 0
    dropped_records: int = 0
    latency_ms: int = 0
    failure: FailureKind | None = None
    message: str | None = None


class ResultMetadata(BaseModel):
    fingerprint: str
    strategy: str
    providers_consulted: list[str] = []
    providers_succeeded: list[str] = []
    providers_failed: dict[str, FailureKind] = {}
    attempts: list[AttemptRecord] = []
    dropped: dict[str, int] = {}
    total_results: int = 0
    total_latency_ms: int = 0
    currency: str
    synthetic: bool = False
    cached: bool = False
    cached_at: datetime | None = None


class RankedResult(BaseModel):
    offers: list[Offer]
    metadata: ResultMetadata

    @property
    def best_offer(self) -> Offer | None:
        return self.offers[0] if self.offers else None
