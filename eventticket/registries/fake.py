import asyncio
from hashlib import sha256
from time import time
from typing import Optional

from loguru import logger

from eventticket.core.models import Event, Ticket
from eventticket.exceptions import TransportError
from eventticket.settings import settings

from .base import (
    Registry,
    StatusResponse,
    TxFailedReceipt,
    TxReceipt,
    TxResponse,
    TxSuccessReceipt,
)

EMPTY_ADDRESS = "0x0000000000000000000000000000000000000000"


class FakeRegistry(Registry):
    """
    In-memory registry that applies the same rules as the EventTicket contract.
    Useful to run the client without a node and for tests.
    """

    contract_name = "EventTicket"

    def __init__(self) -> None:
        self.account = settings.fake_registry_account
        self.events: dict[int, Event] = {}
        self.tickets: dict[int, Ticket] = {}
        self.owner_tickets: dict[str, list[int]] = {}
        self.receipts: dict[str, TxReceipt] = {}
        self.block_number = 0
        self.read_calls: list[str] = []
        self.write_calls: list[str] = []
        self.read_error: Optional[str] = None
        self._reject_next: Optional[str] = None

    async def cleanup(self):
        pass

    async def status(self) -> StatusResponse:
        logger.info(
            "FakeRegistry keeps events and tickets in memory, nothing is written"
            " to a ledger."
        )
        return StatusResponse(None, self.contract_name)

    def fail_reads(self, message: Optional[str] = "Unable to reach registry."):
        """Make every following read raise a TransportError, None to recover."""
        self.read_error = message

    def reject_next(self, message: str = "User rejected the request."):
        """The next write is declined as if the signer cancelled it."""
        self._reject_next = message

    def _read(self, call: str) -> None:
        self.read_calls.append(call)
        if self.read_error:
            raise TransportError(self.read_error)

    async def default_account(self) -> Optional[str]:
        return self.account

    async def total_events(self) -> int:
        self._read("totalEvents")
        return len(self.events)

    async def get_event(self, event_id: int) -> Event:
        self._read("getEvent")
        await asyncio.sleep(0)
        return self.events.get(event_id) or _empty_event()

    async def get_owner_tickets(self, owner: str) -> list[int]:
        self._read("getOwnerTickets")
        return list(self.owner_tickets.get(owner.lower(), []))

    async def get_ticket(self, ticket_id: int) -> Ticket:
        self._read("getTicket")
        await asyncio.sleep(0)
        ticket = self.tickets.get(ticket_id)
        if not ticket:
            raise TransportError("execution reverted: Ticket does not exist")
        return ticket

    async def create_event(
        self,
        name: str,
        description: str,
        event_date: int,
        venue: str,
        total_tickets: int,
        price: int,
    ) -> TxResponse:
        self.write_calls.append("createEvent")
        rejected = self._take_rejection()
        if rejected:
            return rejected

        if total_tickets <= 0:
            return self._include(None, "Total tickets must be greater than 0")
        if event_date <= int(time()):
            return self._include(None, "Event date must be in the future")

        event_id = len(self.events) + 1
        event = Event(
            event_id=event_id,
            name=name,
            description=description,
            event_date=event_date,
            venue=venue,
            creator=self.account,
            total_tickets=total_tickets,
            tickets_sold=0,
            price=price,
            is_active=True,
        )
        return self._include(lambda: self.events.__setitem__(event_id, event))

    async def mint_ticket(self, event_id: int, recipient: str, value: int) -> TxResponse:
        self.write_calls.append("mintTicket")
        rejected = self._take_rejection()
        if rejected:
            return rejected

        event = self.events.get(event_id)
        if not event:
            return self._include(None, "Event does not exist")
        if not event.is_active:
            return self._include(None, "Event is not active")
        if event.tickets_sold >= event.total_tickets:
            return self._include(None, "Event sold out")
        if value != event.price:
            return self._include(None, "Incorrect payment amount")

        def _mint():
            ticket_id = len(self.tickets) + 1
            self.tickets[ticket_id] = Ticket(
                ticket_id=ticket_id,
                event_id=event_id,
                owner=recipient,
                purchase_price=value,
                purchase_time=int(time()),
                is_valid=True,
            )
            self.owner_tickets.setdefault(recipient.lower(), []).append(ticket_id)
            self.events[event_id] = event.model_copy(
                update={"tickets_sold": event.tickets_sold + 1}
            )

        return self._include(_mint)

    def set_event_active(self, event_id: int, is_active: bool) -> None:
        event = self.events[event_id]
        self.events[event_id] = event.model_copy(update={"is_active": is_active})

    async def wait_for_receipt(self, tx_hash: str) -> TxReceipt:
        await asyncio.sleep(0)
        receipt = self.receipts.get(tx_hash)
        if receipt is None:
            raise TransportError(f"Transaction {tx_hash} not found.")
        return receipt

    def _take_rejection(self) -> Optional[TxResponse]:
        if self._reject_next is None:
            return None
        message, self._reject_next = self._reject_next, None
        return TxResponse(ok=False, error_message=message, rejected=True)

    def _include(self, apply, revert_reason: Optional[str] = None) -> TxResponse:
        self.block_number += 1
        tx_hash = "0x" + sha256(f"{self.block_number}:{time()}".encode()).hexdigest()
        if revert_reason:
            self.receipts[tx_hash] = TxFailedReceipt(
                block_number=self.block_number,
                error_message=f"execution reverted: {revert_reason}",
            )
        else:
            apply()
            self.receipts[tx_hash] = TxSuccessReceipt(block_number=self.block_number)
        return TxResponse(ok=True, tx_hash=tx_hash)


def _empty_event() -> Event:
    return Event(
        event_id=0,
        name="",
        description="",
        event_date=0,
        venue="",
        creator=EMPTY_ADDRESS,
        total_tickets=0,
        tickets_sold=0,
        price=0,
        is_active=False,
    )
