import sqlmodel

from replay_browser.core.enums import ReplayEventType

from ._base import BaseModel


class StoredReplayEvent(BaseModel, table=True):
    """A decoded event persisted as its discriminator plus a JSON payload."""

    __tablename__: str = "replay_events"

    id: int = sqlmodel.Field(primary_key=True, index=True, default=None)
    replay_id: int | None = sqlmodel.Field(
        default=None, foreign_key="replays.id", index=True, ondelete="CASCADE"
    )
    sequence: int = 0
    """Position of the event inside its replay's event stream"""
    event_type: ReplayEventType = sqlmodel.Field(index=True)
    payload: dict = sqlmodel.Field(sa_column=sqlmodel.Column(sqlmodel.JSON))
