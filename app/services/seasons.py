"""Status transitions driven by marking seasons watched or unwatched."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Mapping


class SeasonEvent(str, Enum):
    ADDED = "added"
    REMOVED = "removed"


class Progress(str, Enum):
    """Watched-season count relative to the (optional) total."""

    EMPTY = "empty"
    PARTIAL = "partial"
    ALL = "all"


class DateAction(str, Enum):
    KEEP = "keep"
    SET = "set"
    CLEAR = "clear"


@dataclass(frozen=True, slots=True)
class Transition:
    status: str
    date_completed: DateAction = DateAction.KEEP


# Keyed by (event, current status, progress after the toggle). Combinations
# that are absent leave status and completion date untouched.
SEASON_TRANSITIONS: Mapping[tuple[SeasonEvent, str, Progress], Transition] = {
    # Starting a show moves it out of the backlog.
    (SeasonEvent.ADDED, "planToWatch", Progress.PARTIAL): Transition("watching"),
    (SeasonEvent.REMOVED, "planToWatch", Progress.PARTIAL): Transition("watching"),
    # Watching every season completes it.
    (SeasonEvent.ADDED, "planToWatch", Progress.ALL): Transition("completed", DateAction.SET),
    (SeasonEvent.ADDED, "watching", Progress.ALL): Transition("completed", DateAction.SET),
    # Unwatching the last season returns the title to the backlog.
    (SeasonEvent.REMOVED, "completed", Progress.EMPTY): Transition("planToWatch", DateAction.CLEAR),
    (SeasonEvent.REMOVED, "watching", Progress.EMPTY): Transition("planToWatch"),
    # Unwatching one of several seasons reopens a completed title.
    (SeasonEvent.REMOVED, "completed", Progress.PARTIAL): Transition("watching", DateAction.CLEAR),
    # Dropping a season outside the reported total can still leave every season watched.
    (SeasonEvent.REMOVED, "planToWatch", Progress.ALL): Transition("completed", DateAction.SET),
    (SeasonEvent.REMOVED, "watching", Progress.ALL): Transition("completed", DateAction.SET),
}


def measure_progress(watched_count: int, total_seasons: int | None) -> Progress:
    if watched_count == 0:
        return Progress.EMPTY
    if total_seasons is not None and watched_count == total_seasons:
        return Progress.ALL
    return Progress.PARTIAL


def resolve_transition(
    event: SeasonEvent,
    status: str,
    watched_count: int,
    total_seasons: int | None,
) -> Transition | None:
    """Look up the transition for a toggle, or ``None`` when nothing changes."""

    progress = measure_progress(watched_count, total_seasons)
    return SEASON_TRANSITIONS.get((event, status, progress))
