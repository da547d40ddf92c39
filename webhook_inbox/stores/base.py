"""Base interface for event store backends."""
from abc import ABC, abstractmethod
from typing import List, Tuple
from ..event_models import Event, EventFilter, EventPage, SourceCount


class EventStore(ABC):
    """Abstract interface for event persistence implementations."""

    name = "base"

    @abstractmethod
    async def insert(self, event: Event) -> Event:
        """
        Persist a fully-populated event.

        Raises:
            DuplicateEventId: If an event with the same id already exists
            StorageFailure: If the backend write fails
        """

    @abstractmethod
    async def list_events(self, flt: EventFilter) -> EventPage:
        """
        Return one page of previews matching the filter, newest first.

        The filter's limit and offset are used as given.
        """

    @abstractmethod
    async def get(self, event_id: str) -> Event:
        """
        Fetch a full event.

        Raises:
            EventNotFound: If no event has this id
        """

    @abstractmethod
    async def count_by_source(self) -> Tuple[int, List[SourceCount]]:
        """Return the total event count and per-source counts, largest first."""

    @abstractmethod
    async def delete_before(self, cutoff: str) -> int:
        """Delete events received strictly before cutoff; return how many."""

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the backend is reachable."""

    async def close(self):
        """Release backend resources."""
