from enum import StrEnum


class MobState(StrEnum):
    INVALID = "Invalid"
    ALIVE = "Alive"
    CRITICAL = "Critical"
    DEAD = "Dead"


class ReplayEventType(StrEnum):
    MOB_STATE_CHANGED = "MobStateChangedPlayerReplayEvent"


class ReplayEventSeverity(StrEnum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class LeaderboardStatistic(StrEnum):
    ROUNDS_PLAYED = "rounds_played"
    ANTAG_ROUNDS = "antag_rounds"
    DEATHS = "deaths"
