from __future__ import annotations

import asyncio
import inspect
from typing import Optional

from loguru import logger

from eventticket.exceptions import (
    CoordinatorBusy,
    EventTicketError,
    IllegalTransition,
    RevertedError,
    ValidationError,
)
from eventticket.helpers import parse_date_input, parse_ether, parse_positive_int
from eventticket.registries import Registry

from .models import CreateEventForm, Event, MintTicketForm, Notice, TxPhase
from .reader import LedgerReader
from .refresh import RefreshController, refresh_controller

TRANSITIONS: dict[TxPhase, frozenset[TxPhase]] = {
    TxPhase.IDLE: frozenset({TxPhase.VALIDATING}),
    TxPhase.VALIDATING: frozenset({TxPhase.SUBMITTING, TxPhase.FAILED}),
    TxPhase.SUBMITTING: frozenset({TxPhase.CONFIRMING, TxPhase.FAILED}),
    TxPhase.CONFIRMING: frozenset({TxPhase.SUCCEEDED, TxPhase.FAILED}),
    TxPhase.SUCCEEDED: frozenset({TxPhase.IDLE}),
    TxPhase.FAILED: frozenset({TxPhase.IDLE}),
}

NOT_CONFIGURED = "EventTicket contract address is not configured."

CREATE_EVENT_DATE_INVALID = "Fill out the form with a future event date."
CREATE_EVENT_SUPPLY_INVALID = "Provide a ticket supply greater than zero."
CREATE_EVENT_PRICE_INVALID = "Set a ticket price in ETH."
CREATE_EVENT_FAILED = "Failed to submit transaction."
CREATE_EVENT_SUCCEEDED = "Event created on-chain."

MINT_EVENT_MISSING = "Select an event before minting."
MINT_RECIPIENT_MISSING = "Connect a wallet or enter a recipient address."
MINT_FAILED = "Mint transaction failed."
MINT_SUCCEEDED = "Ticket minted successfully."


class TransactionCoordinator:
    """
    Runs the create-event and mint-ticket commands.

    Every command walks IDLE -> VALIDATING -> SUBMITTING -> CONFIRMING and
    ends in SUCCEEDED or FAILED; the next command starts over from IDLE.
    Only one command may be in flight per coordinator, callers must wait for
    the current one (see `busy`) before starting another. Registry failures
    end up in the returned `Notice`, they are not raised.
    """

    def __init__(
        self,
        reader: LedgerReader,
        registry: Optional[Registry] = None,
        refresh: Optional[RefreshController] = None,
    ):
        self.reader = reader
        self.registry = registry or reader.registry
        self.refresh = refresh or refresh_controller
        self.phase = TxPhase.IDLE
        self.trail: list[TxPhase] = [TxPhase.IDLE]
        self.connected: Optional[str] = None
        self.create_form = CreateEventForm()
        self.mint_form = MintTicketForm()
        self.create_event_notice: Optional[Notice] = None
        self.mint_notice: Optional[Notice] = None
        self.last_tx_hash: Optional[str] = None

    @property
    def busy(self) -> bool:
        return self.phase.in_flight

    def _transition(self, phase: TxPhase) -> None:
        if phase not in TRANSITIONS[self.phase]:
            raise IllegalTransition(f"Can not move from {self.phase} to {phase}.")
        self.phase = phase
        self.trail.append(phase)

    def _begin(self) -> None:
        if self.busy:
            raise CoordinatorBusy(
                f"A transaction is already {self.phase}, wait for it to finish."
            )
        if self.phase != TxPhase.IDLE:
            self._transition(TxPhase.IDLE)
        self.trail = [TxPhase.IDLE]
        self.last_tx_hash = None
        self._transition(TxPhase.VALIDATING)

    async def _submit_and_confirm(self, submit) -> None:
        self._transition(TxPhase.SUBMITTING)
        response = await submit()
        tx_hash = response.raise_for_status()
        self.last_tx_hash = tx_hash
        logger.debug(f"transaction {tx_hash} submitted, waiting for receipt")

        self._transition(TxPhase.CONFIRMING)
        receipt = await self.registry.wait_for_receipt(tx_hash)
        if not receipt.success:
            raise RevertedError(receipt.error_message)
        self._transition(TxPhase.SUCCEEDED)
        logger.success(f"transaction {tx_hash} included in block {receipt.block_number}")

    async def _run(self, submit, fallback: str) -> Optional[str]:
        """Submit and confirm, returns the failure message if any."""
        try:
            await self._submit_and_confirm(submit)
        except IllegalTransition:
            raise
        except asyncio.CancelledError:
            self._transition(TxPhase.FAILED)
            raise
        except EventTicketError as exc:
            logger.warning(f"transaction failed in {self.phase}: {exc.message}")
            self._transition(TxPhase.FAILED)
            return exc.message or fallback
        except Exception as exc:
            logger.warning(f"transaction failed in {self.phase}: {exc!s}")
            self._transition(TxPhase.FAILED)
            return str(exc) or fallback
        return None

    async def _validate(
        self, validate, fallback: str
    ) -> tuple[Optional[dict], Optional[Notice]]:
        """Run validation, returns the call arguments or the failure notice."""
        try:
            args = validate()
            if inspect.isawaitable(args):
                args = await args
        except IllegalTransition:
            raise
        except asyncio.CancelledError:
            self._transition(TxPhase.FAILED)
            raise
        except ValidationError as exc:
            logger.debug(f"validation failed: {exc.message}")
            self._transition(TxPhase.FAILED)
            return None, Notice(label=exc.message, tone="error")
        except EventTicketError as exc:
            logger.warning(f"validation failed: {exc.message}")
            self._transition(TxPhase.FAILED)
            return None, Notice(label=exc.message or fallback, tone="error")
        except Exception as exc:
            logger.warning(f"validation failed: {exc!s}")
            self._transition(TxPhase.FAILED)
            return None, Notice(label=str(exc) or fallback, tone="error")
        return args, None

    def validate_create_event(self, form: CreateEventForm) -> dict:
        if not self.registry.configured:
            raise ValidationError(NOT_CONFIGURED)

        timestamp = parse_date_input(form.date)
        if not form.name or not timestamp or timestamp <= 0:
            raise ValidationError(CREATE_EVENT_DATE_INVALID)

        total_tickets = parse_positive_int(form.total_tickets)
        if not total_tickets:
            raise ValidationError(CREATE_EVENT_SUPPLY_INVALID)

        if not form.price.strip():
            raise ValidationError(CREATE_EVENT_PRICE_INVALID)
        try:
            price = parse_ether(form.price)
        except ValueError as exc:
            raise ValidationError(CREATE_EVENT_PRICE_INVALID) from exc

        return {
            "name": form.name,
            "description": form.description,
            "event_date": timestamp,
            "venue": form.venue,
            "total_tickets": total_tickets,
            "price": price,
        }

    async def create_event(self, form: Optional[CreateEventForm] = None) -> Notice:
        if form is not None:
            self.create_form = form
        self._begin()
        self.create_event_notice = None

        args, notice = await self._validate(
            lambda: self.validate_create_event(self.create_form), CREATE_EVENT_FAILED
        )
        if notice:
            self.create_event_notice = notice
            return notice

        logger.info(f"creating event '{args['name']}'")
        error = await self._run(
            lambda: self.registry.create_event(**args), CREATE_EVENT_FAILED
        )
        if error:
            self.create_event_notice = Notice(label=error, tone="error")
            return self.create_event_notice

        self.create_form = CreateEventForm()
        self.refresh.bump()
        self.create_event_notice = Notice(label=CREATE_EVENT_SUCCEEDED, tone="success")
        return self.create_event_notice

    async def resolve_event(self, event_id: int) -> Event:
        """
        The event to mint against, from the last fetched list or, when the
        list does not have it (yet), straight from the registry.
        """
        event = self.reader.find_cached_event(event_id)
        if event:
            return event
        event = await self.reader.get_event(event_id)
        if not event or not event.exists:
            raise ValidationError(f"Event #{event_id} could not be resolved.")
        return event

    async def validate_mint_ticket(
        self, form: MintTicketForm, connected: Optional[str]
    ) -> dict:
        if not self.registry.configured:
            raise ValidationError(NOT_CONFIGURED)

        event_id = parse_positive_int(form.event_id)
        if not event_id:
            raise ValidationError(MINT_EVENT_MISSING)

        recipient = form.recipient.strip() or connected
        if not recipient:
            raise ValidationError(MINT_RECIPIENT_MISSING)

        event = await self.resolve_event(event_id)
        return {"event_id": event_id, "recipient": recipient, "value": event.price}

    async def mint_ticket(
        self, form: Optional[MintTicketForm] = None, connected: Optional[str] = None
    ) -> Notice:
        if form is not None:
            self.mint_form = form
        self._begin()
        self.mint_notice = None

        args, notice = await self._validate(
            lambda: self.validate_mint_ticket(
                self.mint_form, connected or self.connected
            ),
            MINT_FAILED,
        )
        if notice:
            self.mint_notice = notice
            return notice

        logger.info(
            f"minting ticket for event #{args['event_id']} to {args['recipient']}"
        )
        error = await self._run(lambda: self.registry.mint_ticket(**args), MINT_FAILED)
        if error:
            self.mint_notice = Notice(label=error, tone="error")
            return self.mint_notice

        self.refresh.bump()
        self.mint_notice = Notice(label=MINT_SUCCEEDED, tone="success")
        return self.mint_notice
