import asyncio
from unittest.mock import AsyncMock

import pytest
from pytest_mock.plugin import MockerFixture

from eventticket.core.coordinator import TransactionCoordinator
from eventticket.core.models import CreateEventForm, MintTicketForm, TxPhase
from eventticket.core.reader import LedgerReader
from eventticket.core.refresh import RefreshController
from eventticket.exceptions import CoordinatorBusy, IllegalTransition, TransportError
from eventticket.registries import FakeRegistry, VoidRegistry
from eventticket.registries.base import TxResponse
from tests.helpers import ALICE, BOB, future, make_event, seed

FULL_TRAIL = [
    TxPhase.IDLE,
    TxPhase.VALIDATING,
    TxPhase.SUBMITTING,
    TxPhase.CONFIRMING,
    TxPhase.SUCCEEDED,
]
VALIDATION_TRAIL = [TxPhase.IDLE, TxPhase.VALIDATING, TxPhase.FAILED]


def event_form(**kwargs) -> CreateEventForm:
    data = {
        "name": "Local Dev Day",
        "description": "Talks and pizza",
        "venue": "Localhost Arena",
        "date": str(future()),
        "total_tickets": "5",
        "price": "0.05",
    }
    data.update(kwargs)
    return CreateEventForm(**data)


@pytest.mark.anyio
async def test_create_event(
    coordinator: TransactionCoordinator,
    registry: FakeRegistry,
    refresh: RefreshController,
):
    form = event_form()
    notice = await coordinator.create_event(form)

    assert notice.success
    assert notice.label == "Event created on-chain."
    assert coordinator.phase == TxPhase.SUCCEEDED
    assert coordinator.trail == FULL_TRAIL
    assert coordinator.last_tx_hash
    assert refresh.token == 1
    assert coordinator.create_form == CreateEventForm()

    event = registry.events[1]
    assert event.name == "Local Dev Day"
    assert event.event_date == int(form.date)
    assert event.total_tickets == 5
    assert event.price == 50_000_000_000_000_000


@pytest.mark.anyio
@pytest.mark.parametrize(
    "form, message",
    [
        (event_form(name=""), "Fill out the form with a future event date."),
        (event_form(date=""), "Fill out the form with a future event date."),
        (event_form(date="someday"), "Fill out the form with a future event date."),
        (event_form(date="0"), "Fill out the form with a future event date."),
        (event_form(date="\u00b2"), "Fill out the form with a future event date."),
        (event_form(total_tickets="0"), "Provide a ticket supply greater than zero."),
        (event_form(total_tickets=""), "Provide a ticket supply greater than zero."),
        (event_form(total_tickets="-2"), "Provide a ticket supply greater than zero."),
        (event_form(price=""), "Set a ticket price in ETH."),
        (event_form(price="free"), "Set a ticket price in ETH."),
        (event_form(price="-0.1"), "Set a ticket price in ETH."),
    ],
)
async def test_create_event_validation(
    coordinator: TransactionCoordinator,
    registry: FakeRegistry,
    refresh: RefreshController,
    form: CreateEventForm,
    message: str,
):
    notice = await coordinator.create_event(form)

    assert not notice.success
    assert notice.label == message
    assert coordinator.trail == VALIDATION_TRAIL
    assert registry.write_calls == []
    assert refresh.token == 0
    assert coordinator.create_form == form


@pytest.mark.anyio
async def test_create_event_first_failure_wins(coordinator: TransactionCoordinator):
    notice = await coordinator.create_event(
        event_form(name="", total_tickets="0", price="")
    )
    assert notice.label == "Fill out the form with a future event date."


@pytest.mark.anyio
async def test_create_event_free_tickets(
    coordinator: TransactionCoordinator, registry: FakeRegistry
):
    notice = await coordinator.create_event(event_form(price="0"))
    assert notice.success
    assert registry.events[1].price == 0


@pytest.mark.anyio
async def test_create_event_reverted(
    coordinator: TransactionCoordinator,
    registry: FakeRegistry,
    refresh: RefreshController,
):
    form = event_form(date="1000")
    notice = await coordinator.create_event(form)

    assert not notice.success
    assert notice.label == "execution reverted: Event date must be in the future"
    assert coordinator.trail == [
        TxPhase.IDLE,
        TxPhase.VALIDATING,
        TxPhase.SUBMITTING,
        TxPhase.CONFIRMING,
        TxPhase.FAILED,
    ]
    assert refresh.token == 0
    assert coordinator.create_form == form
    assert registry.events == {}


@pytest.mark.anyio
async def test_create_event_rejected_by_signer(
    coordinator: TransactionCoordinator,
    registry: FakeRegistry,
    refresh: RefreshController,
):
    registry.reject_next("MetaMask Tx Signature: User denied transaction signature.")
    notice = await coordinator.create_event(event_form())

    assert not notice.success
    assert notice.label == "MetaMask Tx Signature: User denied transaction signature."
    assert coordinator.trail == [
        TxPhase.IDLE,
        TxPhase.VALIDATING,
        TxPhase.SUBMITTING,
        TxPhase.FAILED,
    ]
    assert refresh.token == 0


@pytest.mark.anyio
async def test_create_event_generic_failure_message(
    coordinator: TransactionCoordinator,
    registry: FakeRegistry,
    mocker: MockerFixture,
):
    mocker.patch.object(
        registry, "create_event", AsyncMock(return_value=TxResponse(ok=False))
    )
    notice = await coordinator.create_event(event_form())
    assert notice.label == "Failed to submit transaction."


@pytest.mark.anyio
async def test_create_event_unexpected_error_is_a_notice(
    coordinator: TransactionCoordinator,
    registry: FakeRegistry,
    mocker: MockerFixture,
):
    mocker.patch.object(
        registry, "create_event", AsyncMock(side_effect=ValueError("bad input"))
    )
    notice = await coordinator.create_event(event_form())
    assert notice.label == "bad input"
    assert coordinator.phase == TxPhase.FAILED


@pytest.mark.anyio
async def test_failed_write_keeps_cached_reads(
    coordinator: TransactionCoordinator,
    reader: LedgerReader,
    registry: FakeRegistry,
    mocker: MockerFixture,
):
    seed(registry, [make_event(1)])
    await reader.list_events()
    mocker.patch.object(
        registry,
        "wait_for_receipt",
        AsyncMock(side_effect=TransportError("Unable to connect.")),
    )

    notice = await coordinator.create_event(event_form())

    assert notice.label == "Unable to connect."
    assert [event.event_id for event in reader.cached_events()] == [1]


@pytest.mark.anyio
async def test_next_command_starts_from_idle(
    coordinator: TransactionCoordinator, refresh: RefreshController
):
    await coordinator.create_event(event_form(total_tickets="0"))
    assert coordinator.phase == TxPhase.FAILED

    await coordinator.create_event(event_form())
    assert coordinator.trail == FULL_TRAIL
    assert refresh.token == 1


@pytest.mark.anyio
async def test_command_while_in_flight_is_refused(
    coordinator: TransactionCoordinator, registry: FakeRegistry
):
    gate = asyncio.Event()
    original = registry.wait_for_receipt

    async def slow_receipt(tx_hash: str):
        await gate.wait()
        return await original(tx_hash)

    registry.wait_for_receipt = slow_receipt  # type: ignore[method-assign]
    first = asyncio.ensure_future(coordinator.create_event(event_form()))
    for _ in range(10):
        await asyncio.sleep(0)
    assert coordinator.phase == TxPhase.CONFIRMING
    assert coordinator.busy

    with pytest.raises(CoordinatorBusy):
        await coordinator.mint_ticket(MintTicketForm(event_id="1", recipient=ALICE))

    gate.set()
    notice = await first
    assert notice.success
    assert not coordinator.busy


def test_illegal_transition(coordinator: TransactionCoordinator):
    with pytest.raises(IllegalTransition):
        coordinator._transition(TxPhase.CONFIRMING)
    assert coordinator.phase == TxPhase.IDLE


@pytest.mark.anyio
async def test_unconfigured_registry_refuses_commands(cache, refresh):
    reader = LedgerReader(VoidRegistry(), cache, refresh)
    coordinator = TransactionCoordinator(reader, refresh=refresh)

    notice = await coordinator.create_event(event_form())
    assert notice.label == "EventTicket contract address is not configured."
    notice = await coordinator.mint_ticket(MintTicketForm(event_id="1"), ALICE)
    assert notice.label == "EventTicket contract address is not configured."
    assert refresh.token == 0


@pytest.mark.anyio
async def test_mint_ticket(
    coordinator: TransactionCoordinator,
    reader: LedgerReader,
    registry: FakeRegistry,
    refresh: RefreshController,
):
    seed(registry, [make_event(1, price=10**17)])
    await reader.list_events()

    notice = await coordinator.mint_ticket(MintTicketForm(event_id="1", recipient=BOB))

    assert notice.success
    assert notice.label == "Ticket minted successfully."
    assert coordinator.trail == FULL_TRAIL
    assert refresh.token == 1
    ticket = registry.tickets[1]
    assert ticket.owner == BOB
    assert ticket.purchase_price == 10**17
    assert registry.events[1].tickets_sold == 1


@pytest.mark.anyio
async def test_mint_ticket_defaults_to_connected_account(
    coordinator: TransactionCoordinator, reader: LedgerReader, registry: FakeRegistry
):
    seed(registry, [make_event(1)])
    await reader.list_events()

    notice = await coordinator.mint_ticket(
        MintTicketForm(event_id="1", recipient="  "), connected=ALICE
    )

    assert notice.success
    assert registry.tickets[1].owner == ALICE


@pytest.mark.anyio
async def test_mint_ticket_uses_coordinator_connection(
    coordinator: TransactionCoordinator, reader: LedgerReader, registry: FakeRegistry
):
    seed(registry, [make_event(1)])
    await reader.list_events()
    coordinator.connected = BOB

    notice = await coordinator.mint_ticket(MintTicketForm(event_id="1"))

    assert notice.success
    assert registry.tickets[1].owner == BOB


@pytest.mark.anyio
@pytest.mark.parametrize("event_id", ["", "abc", "0"])
async def test_mint_ticket_without_event(
    coordinator: TransactionCoordinator,
    registry: FakeRegistry,
    refresh: RefreshController,
    event_id: str,
):
    notice = await coordinator.mint_ticket(
        MintTicketForm(event_id=event_id, recipient=ALICE)
    )
    assert notice.label == "Select an event before minting."
    assert coordinator.trail == VALIDATION_TRAIL
    assert registry.write_calls == []
    assert refresh.token == 0


@pytest.mark.anyio
async def test_mint_ticket_without_recipient(
    coordinator: TransactionCoordinator, registry: FakeRegistry
):
    notice = await coordinator.mint_ticket(MintTicketForm(event_id="1"))
    assert notice.label == "Connect a wallet or enter a recipient address."
    assert registry.write_calls == []


@pytest.mark.anyio
async def test_mint_ticket_resolves_uncached_event(
    coordinator: TransactionCoordinator, registry: FakeRegistry
):
    seed(registry, [make_event(1, price=2 * 10**17)])

    notice = await coordinator.mint_ticket(MintTicketForm(event_id="1"), ALICE)

    assert notice.success
    assert registry.tickets[1].purchase_price == 2 * 10**17
    assert "getEvent" in registry.read_calls


@pytest.mark.anyio
async def test_mint_ticket_unknown_event(
    coordinator: TransactionCoordinator, registry: FakeRegistry
):
    notice = await coordinator.mint_ticket(MintTicketForm(event_id="99"), ALICE)
    assert notice.label == "Event #99 could not be resolved."
    assert coordinator.trail == VALIDATION_TRAIL
    assert registry.write_calls == []


@pytest.mark.anyio
async def test_mint_ticket_event_lookup_fails(
    coordinator: TransactionCoordinator, registry: FakeRegistry
):
    registry.fail_reads("node down")
    notice = await coordinator.mint_ticket(MintTicketForm(event_id="1"), ALICE)
    assert notice.label == "node down"
    assert coordinator.phase == TxPhase.FAILED
    assert registry.write_calls == []


@pytest.mark.anyio
async def test_mint_ticket_sold_out(
    coordinator: TransactionCoordinator,
    reader: LedgerReader,
    registry: FakeRegistry,
    refresh: RefreshController,
):
    seed(registry, [make_event(1, total_tickets=1, tickets_sold=1)])
    await reader.list_events()

    notice = await coordinator.mint_ticket(MintTicketForm(event_id="1"), ALICE)

    assert notice.label == "execution reverted: Event sold out"
    assert refresh.token == 0
    assert registry.tickets == {}


@pytest.mark.anyio
async def test_mint_ticket_generic_failure_message(
    coordinator: TransactionCoordinator,
    reader: LedgerReader,
    registry: FakeRegistry,
    mocker: MockerFixture,
):
    seed(registry, [make_event(1)])
    await reader.list_events()
    mocker.patch.object(
        registry, "mint_ticket", AsyncMock(return_value=TxResponse(ok=False))
    )
    notice = await coordinator.mint_ticket(MintTicketForm(event_id="1"), ALICE)
    assert notice.label == "Mint transaction failed."


@pytest.mark.anyio
async def test_cancelled_mint_validation_leaves_coordinator_usable(
    coordinator: TransactionCoordinator, registry: FakeRegistry
):
    gate = asyncio.Event()

    async def slow_get_event(event_id: int):
        await gate.wait()

    registry.get_event = slow_get_event  # type: ignore[method-assign]
    task = asyncio.ensure_future(
        coordinator.mint_ticket(MintTicketForm(event_id="1"), ALICE)
    )
    for _ in range(10):
        await asyncio.sleep(0)
    assert coordinator.phase == TxPhase.VALIDATING

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert coordinator.phase == TxPhase.FAILED
    assert not coordinator.busy

    notice = await coordinator.mint_ticket(MintTicketForm())
    assert notice.label == "Select an event before minting."
    assert coordinator.trail == VALIDATION_TRAIL


@pytest.mark.anyio
async def test_command_while_validating_is_refused(
    coordinator: TransactionCoordinator, registry: FakeRegistry
):
    seed(registry, [make_event(1)])
    gate = asyncio.Event()
    original = registry.get_event

    async def slow_get_event(event_id: int):
        await gate.wait()
        return await original(event_id)

    registry.get_event = slow_get_event  # type: ignore[method-assign]
    first = asyncio.ensure_future(
        coordinator.mint_ticket(MintTicketForm(event_id="1"), ALICE)
    )
    for _ in range(10):
        await asyncio.sleep(0)
    assert coordinator.phase == TxPhase.VALIDATING
    assert coordinator.busy

    with pytest.raises(CoordinatorBusy):
        await coordinator.create_event(event_form())

    gate.set()
    notice = await first
    assert notice.success
    assert coordinator.trail == FULL_TRAIL


@pytest.mark.anyio
async def test_unexpected_error_while_resolving_event(
    coordinator: TransactionCoordinator, registry: FakeRegistry, mocker: MockerFixture
):
    mocker.patch.object(
        registry, "get_event", AsyncMock(side_effect=RuntimeError("boom"))
    )

    notice = await coordinator.mint_ticket(MintTicketForm(event_id="1"), ALICE)

    assert notice.label == "boom"
    assert coordinator.trail == VALIDATION_TRAIL
    assert registry.write_calls == []

    notice = await coordinator.mint_ticket(MintTicketForm())
    assert notice.label == "Select an event before minting."


@pytest.mark.anyio
async def test_unexpected_error_while_validating_create_event(
    coordinator: TransactionCoordinator, mocker: MockerFixture
):
    mocker.patch(
        "eventticket.core.coordinator.parse_date_input",
        side_effect=ValueError(""),
    )

    notice = await coordinator.create_event(event_form())

    assert notice.label == "Failed to submit transaction."
    assert coordinator.trail == VALIDATION_TRAIL
