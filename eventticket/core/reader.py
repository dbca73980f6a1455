from __future__ import annotations

import asyncio
from typing import Optional

from loguru import logger

from eventticket.cache import QueryCache, QueryKey, query_cache
from eventticket.registries import Registry, get_registry
from eventticket.settings import settings

from .models import Event, Ticket
from .refresh import RefreshController, refresh_controller

EVENTS_QUERY = "events"
OWNER_TICKETS_QUERY = "owner-tickets"


class LedgerReader:
    """
    Read side of the registry. List queries go through the query cache,
    keyed by the refresh token and the network, single record reads don't.
    """

    def __init__(
        self,
        registry: Optional[Registry] = None,
        cache: Optional[QueryCache] = None,
        refresh: Optional[RefreshController] = None,
    ):
        self.registry = registry or get_registry()
        self.cache = cache or query_cache
        self.refresh = refresh or refresh_controller

    @property
    def enabled(self) -> bool:
        return self.registry.configured

    def events_key(self) -> QueryKey:
        return (EVENTS_QUERY, self.refresh.token, settings.network_id)

    def owner_tickets_key(self, owner: str) -> QueryKey:
        return (
            OWNER_TICKETS_QUERY,
            self.refresh.token,
            settings.network_id,
            owner.lower(),
        )

    async def list_events(self) -> list[Event]:
        if not self.enabled:
            return []
        return await self.cache.fetch(
            self.events_key(),
            self._fetch_events,
            slot=(EVENTS_QUERY, settings.network_id),
        )

    async def list_owner_tickets(self, owner: str) -> list[Ticket]:
        if not self.enabled or not owner:
            return []
        return await self.cache.fetch(
            self.owner_tickets_key(owner),
            lambda: self._fetch_owner_tickets(owner),
            slot=(OWNER_TICKETS_QUERY, settings.network_id, owner.lower()),
        )

    async def get_event(self, event_id: int) -> Optional[Event]:
        if not self.enabled:
            return None
        return await self.registry.get_event(event_id)

    async def get_ticket(self, ticket_id: int) -> Optional[Ticket]:
        if not self.enabled:
            return None
        return await self.registry.get_ticket(ticket_id)

    def cached_events(self) -> list[Event]:
        """Most recently fetched event list, empty if none was fetched yet."""
        return self.cache.last_success((EVENTS_QUERY, settings.network_id), [])

    def find_cached_event(self, event_id: int) -> Optional[Event]:
        return next(
            (event for event in self.cached_events() if event.event_id == event_id),
            None,
        )

    async def _fetch_events(self) -> list[Event]:
        total = await self.registry.total_events()
        if total == 0:
            return []

        logger.debug(f"fetching {total} events")
        events = await asyncio.gather(
            *[self.registry.get_event(event_id) for event_id in range(1, total + 1)]
        )
        return sorted(
            (event for event in events if event.exists),
            key=lambda event: event.event_id,
        )

    async def _fetch_owner_tickets(self, owner: str) -> list[Ticket]:
        ticket_ids = await self.registry.get_owner_tickets(owner)
        if not ticket_ids:
            return []

        logger.debug(f"fetching {len(ticket_ids)} tickets of {owner}")
        return list(
            await asyncio.gather(
                *[self.registry.get_ticket(ticket_id) for ticket_id in ticket_ids]
            )
        )
