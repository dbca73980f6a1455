from __future__ import annotations

from typing import Optional


class EventTicketError(Exception):
    def __init__(self, message: Optional[str] = None):
        self.message = message or ""
        super().__init__(self.message)


class ValidationError(EventTicketError):
    """Raised before anything is submitted, `message` is shown to the user as is."""


class TransportError(EventTicketError):
    """The registry could not be reached or answered with garbage."""


class RejectedError(EventTicketError):
    """The signing account declined to authorize a write."""


class RevertedError(EventTicketError):
    """The registry accepted the call but refused the operation."""


class UnsupportedError(EventTicketError):
    pass


class CoordinatorBusy(EventTicketError):
    pass


class IllegalTransition(RuntimeError):
    pass
