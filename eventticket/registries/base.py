from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Coroutine
from typing import NamedTuple, Optional

from eventticket.core.models import Event, Ticket
from eventticket.exceptions import RejectedError, RevertedError


class StatusResponse(NamedTuple):
    error_message: Optional[str]
    contract_name: str = ""


class TxResponse(NamedTuple):
    # ok is None while the node has not told us anything yet
    ok: Optional[bool] = None
    tx_hash: Optional[str] = None
    error_message: Optional[str] = None
    rejected: bool = False

    @property
    def success(self) -> bool:
        return self.ok is True

    @property
    def pending(self) -> bool:
        return self.ok is None

    @property
    def failed(self) -> bool:
        return self.ok is False

    def raise_for_status(self) -> str:
        """Return the transaction hash or raise the matching error."""
        if self.ok is not True or not self.tx_hash:
            if self.rejected:
                raise RejectedError(self.error_message)
            raise RevertedError(self.error_message)
        return self.tx_hash


class TxReceipt(NamedTuple):
    # None until the transaction is included in a block
    status: Optional[bool] = None
    block_number: Optional[int] = None
    error_message: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status is True

    @property
    def pending(self) -> bool:
        return self.status is None

    @property
    def failed(self) -> bool:
        return self.status is False

    def __str__(self) -> str:
        if self.success:
            return "success"
        if self.failed:
            return "failed"
        return "pending"


class TxSuccessReceipt(TxReceipt):
    status = True


class TxFailedReceipt(TxReceipt):
    status = False


class TxPendingReceipt(TxReceipt):
    status = None


class Registry(ABC):
    """
    Read and write surface of an EventTicket registry.

    Read calls raise `TransportError` when the registry can not be reached.
    Write calls never raise for registry-side refusals, they return a failed
    `TxResponse` instead; `wait_for_receipt` resolves once the transaction is
    included (or the registry reports it reverted).
    """

    # False for placeholders that must not be read from or written to
    configured: bool = True

    @abstractmethod
    async def cleanup(self):
        pass

    @abstractmethod
    def status(self) -> Coroutine[None, None, StatusResponse]:
        pass

    @abstractmethod
    def total_events(self) -> Coroutine[None, None, int]:
        pass

    @abstractmethod
    def get_event(self, event_id: int) -> Coroutine[None, None, Event]:
        pass

    @abstractmethod
    def get_owner_tickets(self, owner: str) -> Coroutine[None, None, list[int]]:
        pass

    @abstractmethod
    def get_ticket(self, ticket_id: int) -> Coroutine[None, None, Ticket]:
        pass

    @abstractmethod
    def create_event(
        self,
        name: str,
        description: str,
        event_date: int,
        venue: str,
        total_tickets: int,
        price: int,
    ) -> Coroutine[None, None, TxResponse]:
        pass

    @abstractmethod
    def mint_ticket(
        self, event_id: int, recipient: str, value: int
    ) -> Coroutine[None, None, TxResponse]:
        pass

    @abstractmethod
    def wait_for_receipt(self, tx_hash: str) -> Coroutine[None, None, TxReceipt]:
        pass

    async def default_account(self) -> Optional[str]:
        """Account the registry signs writes with, if it knows one."""
        return None
