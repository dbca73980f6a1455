from time import time
from typing import Optional

from eventticket.core.models import Event, Ticket
from eventticket.registries import FakeRegistry

ALICE = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
BOB = "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC"
CONTRACT = "0x5FbDB2315678afecb367f032d93F642f64180aa3"

DAY = 86_400


def future(days: int = 1) -> int:
    return int(time()) + days * DAY


def make_event(event_id: int = 1, **kwargs) -> Event:
    data = {
        "event_id": event_id,
        "name": f"Event {event_id}",
        "description": "",
        "event_date": future(),
        "venue": "Localhost Arena",
        "creator": ALICE,
        "total_tickets": 100,
        "tickets_sold": 0,
        "price": 5 * 10**16,
        "is_active": True,
    }
    data.update(kwargs)
    return Event(**data)


def make_ticket(ticket_id: int = 1, event_id: int = 1, **kwargs) -> Ticket:
    data = {
        "ticket_id": ticket_id,
        "event_id": event_id,
        "owner": ALICE,
        "purchase_price": 5 * 10**16,
        "purchase_time": int(time()),
        "is_valid": True,
    }
    data.update(kwargs)
    return Ticket(**data)


def seed(
    registry: FakeRegistry,
    events: list[Event],
    tickets: Optional[list[Ticket]] = None,
) -> None:
    """Put records straight into the fake registry, skipping its rules."""
    for event in events:
        registry.events[event.event_id] = event
    for ticket in tickets or []:
        registry.tickets[ticket.ticket_id] = ticket
        registry.owner_tickets.setdefault(ticket.owner.lower(), []).append(
            ticket.ticket_id
        )
