from pydantic import BaseModel, Field


class FailedSource(BaseModel):
    source: str
    reason: str


class DrainReport(BaseModel):
    """Outcome of one pass over the replay queue."""

    ingested: list[int] = Field(default_factory=list)
    """IDs of the replays stored during the drain, in queue order"""
    failed: list[FailedSource] = Field(default_factory=list)
    stopped: bool = False
    """True when the drain was stopped before the queue was empty"""


class ParserStatus(BaseModel):
    is_draining: bool
    pending: list[str]
    last_report: DrainReport | None = None
