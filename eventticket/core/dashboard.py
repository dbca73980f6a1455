from __future__ import annotations

import asyncio
from typing import Optional

from loguru import logger

from eventticket.cache import QueryKey

from .models import Event, Summary, Ticket
from .reader import LedgerReader
from .refresh import RefreshController, refresh_controller
from .summary import summarize

FALLBACK_EVENT_NAME = "Event"


class Dashboard:
    """
    Current view of the registry: events, the owner's tickets and the summary.

    Results are applied only when the key they were fetched for is still the
    current one, a slow response for an old refresh token is dropped. A
    failed load keeps the previous data and records the error.
    """

    def __init__(
        self,
        reader: LedgerReader,
        refresh: Optional[RefreshController] = None,
    ):
        self.reader = reader
        self.refresh = refresh or refresh_controller
        self.events: list[Event] = []
        self.tickets: list[Ticket] = []
        self.summary = Summary()
        self.owner: Optional[str] = None
        self.events_error: Optional[str] = None
        self.tickets_error: Optional[str] = None
        self._events_key: Optional[QueryKey] = None
        self._tickets_key: Optional[QueryKey] = None

    async def load(self, owner: Optional[str] = None) -> None:
        self.owner = owner
        self._events_key = self.reader.events_key()
        self._tickets_key = self.reader.owner_tickets_key(owner) if owner else None
        await asyncio.gather(
            self._load_events(self._events_key),
            self._load_tickets(owner, self._tickets_key),
        )

    async def refresh_data(self) -> None:
        self.refresh.bump()
        await self.load(self.owner)

    async def _load_events(self, key: QueryKey) -> None:
        try:
            events = await self.reader.list_events()
        except Exception as exc:
            if key == self._events_key:
                logger.warning(f"could not load events: {exc!s}")
                self.events_error = str(exc) or "Could not load events."
            return
        if key != self._events_key:
            logger.debug(f"dropping stale events result for {key}")
            return
        self.events = events
        self.events_error = None
        self.summary = summarize(events)

    async def _load_tickets(self, owner: Optional[str], key: Optional[QueryKey]) -> None:
        if not owner or key is None:
            self.tickets = []
            self.tickets_error = None
            return
        try:
            tickets = await self.reader.list_owner_tickets(owner)
        except Exception as exc:
            if key == self._tickets_key:
                logger.warning(f"could not load tickets of {owner}: {exc!s}")
                self.tickets_error = str(exc) or "Could not load tickets."
            return
        if key != self._tickets_key:
            logger.debug(f"dropping stale tickets result for {key}")
            return
        self.tickets = tickets
        self.tickets_error = None

    def event_for_ticket(self, ticket: Ticket) -> Optional[Event]:
        return next(
            (event for event in self.events if event.event_id == ticket.event_id),
            None,
        )

    def ticket_title(self, ticket: Ticket) -> str:
        event = self.event_for_ticket(ticket)
        return event.name if event else FALLBACK_EVENT_NAME
