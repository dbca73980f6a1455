from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

from eventticket.helpers import format_ether, local_datetime


class Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_id: int
    name: str
    description: str
    event_date: int
    venue: str
    creator: str
    total_tickets: int
    tickets_sold: int
    price: int
    is_active: bool

    @property
    def exists(self) -> bool:
        # the registry answers unknown ids with an empty record
        return self.event_id != 0

    @property
    def sold_pct(self) -> int:
        if self.total_tickets == 0:
            return 0
        return round(self.tickets_sold / self.total_tickets * 100)

    @property
    def price_eth(self) -> str:
        return format_ether(self.price)

    @property
    def date(self) -> datetime:
        return local_datetime(self.event_date)


class Ticket(BaseModel):
    model_config = ConfigDict(frozen=True)

    ticket_id: int
    event_id: int
    owner: str
    purchase_price: int
    purchase_time: int
    is_valid: bool

    @property
    def purchase_price_eth(self) -> str:
        return format_ether(self.purchase_price)

    @property
    def purchased_at(self) -> datetime:
        return local_datetime(self.purchase_time)


class Summary(BaseModel):
    model_config = ConfigDict(frozen=True)

    active_event_count: int = 0
    total_ticket_capacity: int = 0
    tickets_sold_count: int = 0
    next_upcoming_event_date: Optional[int] = None

    @property
    def next_event_date(self) -> Optional[datetime]:
        if self.next_upcoming_event_date is None:
            return None
        return local_datetime(self.next_upcoming_event_date)


class CreateEventForm(BaseModel):
    name: str = ""
    description: str = ""
    venue: str = ""
    date: str = ""
    total_tickets: str = ""
    price: str = ""


class MintTicketForm(BaseModel):
    event_id: str = ""
    recipient: str = ""


class Notice(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    tone: Literal["success", "error"]

    @property
    def success(self) -> bool:
        return self.tone == "success"


class TxPhase(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    SUBMITTING = "submitting"
    CONFIRMING = "confirming"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value

    @property
    def in_flight(self) -> bool:
        return self in (TxPhase.VALIDATING, TxPhase.SUBMITTING, TxPhase.CONFIRMING)
