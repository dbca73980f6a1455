from loguru import logger

from eventticket.core.models import Event, Ticket
from eventticket.exceptions import UnsupportedError

from .base import (
    Registry,
    StatusResponse,
    TxPendingReceipt,
    TxReceipt,
    TxResponse,
)


class VoidRegistry(Registry):
    configured = False

    async def cleanup(self):
        pass

    async def status(self) -> StatusResponse:
        logger.warning(
            "This registry does nothing, it is here just as a placeholder, you must"
            " configure an EventTicket contract address before being able to do"
            " anything useful."
        )
        return StatusResponse("EventTicket contract address is not configured.")

    async def total_events(self) -> int:
        return 0

    async def get_event(self, *_, **__) -> Event:
        raise UnsupportedError("VoidRegistry has no events.")

    async def get_owner_tickets(self, *_, **__) -> list[int]:
        return []

    async def get_ticket(self, *_, **__) -> Ticket:
        raise UnsupportedError("VoidRegistry has no tickets.")

    async def create_event(self, *_, **__) -> TxResponse:
        return TxResponse(ok=False, error_message="VoidRegistry cannot create events.")

    async def mint_ticket(self, *_, **__) -> TxResponse:
        return TxResponse(ok=False, error_message="VoidRegistry cannot mint tickets.")

    async def wait_for_receipt(self, *_, **__) -> TxReceipt:
        return TxPendingReceipt()
