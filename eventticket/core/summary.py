from __future__ import annotations

from collections.abc import Iterable
from time import time
from typing import Optional

from .models import Event, Summary


def summarize(events: Iterable[Event], now: Optional[float] = None) -> Summary:
    """
    Summary metrics over the active events. `now` defaults to the current
    time, only dates strictly after it count as upcoming.
    """
    now = time() if now is None else now
    active_events = [event for event in events if event.is_active]
    if not active_events:
        return Summary()

    upcoming = [event.event_date for event in active_events if event.event_date > now]
    return Summary(
        active_event_count=len(active_events),
        total_ticket_capacity=sum(event.total_tickets for event in active_events),
        tickets_sold_count=sum(event.tickets_sold for event in active_events),
        next_upcoming_event_date=min(upcoming) if upcoming else None,
    )
