import asyncio
from datetime import datetime, timedelta
from functools import wraps
from typing import Optional

import click
from loguru import logger

from eventticket.core.coordinator import TransactionCoordinator
from eventticket.core.dashboard import Dashboard
from eventticket.core.models import CreateEventForm, Event, MintTicketForm, Ticket
from eventticket.core.reader import LedgerReader
from eventticket.exceptions import EventTicketError
from eventticket.helpers import format_timestamp
from eventticket.registries import Registry, set_registry
from eventticket.settings import settings
from eventticket.utils.logger import configure_logger, log_client_info


def coro(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        return asyncio.run(f(*args, **kwargs))

    return wrapper


def with_registry(f):
    """Start the registry for the command and close it afterwards."""

    @wraps(f)
    async def wrapper(*args, **kwargs):
        configure_logger()
        registry = set_registry()
        try:
            return await f(registry, *args, **kwargs)
        finally:
            await registry.cleanup()

    return wrapper


@click.group()
@click.option("--registry", "registry_class", help="Registry class to use.")
@click.option("--debug", is_flag=True, help="Enable debug logging.")
def eventticket_cli(registry_class: Optional[str], debug: bool):
    """
    Python CLI for the EventTicket registry
    """
    if registry_class:
        settings.eventticket_registry_class = registry_class
    if debug:
        settings.debug = True


def format_event(event: Event) -> str:
    status = "" if event.is_active else " (inactive)"
    return (
        f"#{event.event_id} {event.name}{status}\n"
        f"    {format_timestamp(event.event_date)} - {event.venue}\n"
        f"    {event.price_eth} ETH - {event.tickets_sold} / {event.total_tickets}"
        f" tickets ({event.sold_pct}% sold)"
    )


def format_ticket(dashboard: Dashboard, ticket: Ticket) -> str:
    validity = "valid" if ticket.is_valid else "invalid"
    return (
        f"Ticket #{ticket.ticket_id} [{validity}] {dashboard.ticket_title(ticket)}\n"
        f"    Purchased {format_timestamp(ticket.purchase_time)}"
        f" - Paid {ticket.purchase_price_eth} ETH"
    )


async def _owner_or_default(registry: Registry, owner: Optional[str]) -> Optional[str]:
    if owner or settings.account_address:
        return owner or settings.account_address
    try:
        return await registry.default_account()
    except EventTicketError as exc:
        logger.warning(f"could not get the node account: {exc.message}")
        return None


@eventticket_cli.command("status")
@coro
@with_registry
async def status(registry: Registry):
    """Checks the connection to the registry"""
    log_client_info()
    response = await registry.status()
    if response.error_message:
        click.echo(f"Registry error: {response.error_message}")
        return
    click.echo(f"Connected to {response.contract_name} at {settings.rpc_url}")


@eventticket_cli.command("summary")
@coro
@with_registry
async def summary(registry: Registry):
    """Prints the summary of active events"""
    dashboard = Dashboard(LedgerReader(registry))
    await dashboard.load()
    if dashboard.events_error:
        click.echo(f"Could not load events: {dashboard.events_error}")
        return
    result = dashboard.summary
    next_date = (
        format_timestamp(result.next_upcoming_event_date, "%Y-%m-%d")
        if result.next_upcoming_event_date
        else "No scheduled dates"
    )
    click.echo(f"Active events: {result.active_event_count} (next: {next_date})")
    click.echo(f"Total tickets: {result.total_ticket_capacity}")
    click.echo(f"Tickets sold: {result.tickets_sold_count}")


@eventticket_cli.command("events")
@coro
@with_registry
async def events(registry: Registry):
    """Lists all events"""
    dashboard = Dashboard(LedgerReader(registry))
    await dashboard.load()
    if dashboard.events_error:
        click.echo(f"Could not load events: {dashboard.events_error}")
        return
    if not dashboard.events:
        click.echo("No events yet.")
    for event in dashboard.events:
        click.echo(format_event(event))


@eventticket_cli.command("tickets")
@click.argument("owner", required=False)
@coro
@with_registry
async def tickets(registry: Registry, owner: Optional[str] = None):
    """Lists the tickets of OWNER (defaults to the signing account)"""
    owner = await _owner_or_default(registry, owner)
    if not owner:
        click.echo("Connect a wallet or pass an owner address.")
        return
    dashboard = Dashboard(LedgerReader(registry))
    await dashboard.load(owner)
    if dashboard.tickets_error:
        click.echo(f"Could not load tickets: {dashboard.tickets_error}")
        return
    if not dashboard.tickets:
        click.echo(f"No tickets for {owner}.")
    for ticket in dashboard.tickets:
        click.echo(format_ticket(dashboard, ticket))


@eventticket_cli.command("create-event")
@click.option("--name", default="", help="Event name.")
@click.option("--description", default="", help="Event description.")
@click.option("--venue", default="", help="Event venue.")
@click.option("--date", default="", help="Event date, ISO 8601 or Unix timestamp.")
@click.option("--tickets", "total_tickets", default="", help="Ticket supply.")
@click.option("--price", default="", help="Ticket price in ETH.")
@coro
@with_registry
async def create_event(registry: Registry, **form):
    """Creates an event on the registry"""
    coordinator = TransactionCoordinator(LedgerReader(registry))
    notice = await coordinator.create_event(CreateEventForm(**form))
    click.echo(notice.label)
    if coordinator.last_tx_hash:
        click.echo(f"tx hash: {coordinator.last_tx_hash}")


@eventticket_cli.command("mint")
@click.argument("event_id", default="")
@click.option("--recipient", default="", help="Ticket recipient address.")
@coro
@with_registry
async def mint(registry: Registry, event_id: str, recipient: str):
    """Mints a ticket of EVENT_ID, paying the event price"""
    reader = LedgerReader(registry)
    # the attached payment comes from the fetched event list
    await Dashboard(reader).load()
    coordinator = TransactionCoordinator(reader)
    coordinator.connected = await _owner_or_default(registry, None)
    notice = await coordinator.mint_ticket(
        MintTicketForm(event_id=event_id, recipient=recipient)
    )
    click.echo(notice.label)
    if coordinator.last_tx_hash:
        click.echo(f"tx hash: {coordinator.last_tx_hash}")


@eventticket_cli.command("check-node")
@coro
@with_registry
async def check_node(registry: Registry):
    """Creates a test event and mints a ticket against a local node"""
    click.echo(f"Using RPC URL: {settings.rpc_url}")
    click.echo(f"Using contract address: {settings.event_ticket_address}")

    response = await registry.status()
    if response.error_message:
        raise click.ClickException(response.error_message)
    click.echo(f"Connected to contract: {response.contract_name}")

    account = await registry.default_account()
    if not account:
        raise click.ClickException("No account available on the node.")
    click.echo(f"Acting as account: {account}")

    reader = LedgerReader(registry)
    coordinator = TransactionCoordinator(reader)
    coordinator.connected = account

    click.echo("Creating a test event...")
    event_date = datetime.now() + timedelta(days=1)
    notice = await coordinator.create_event(
        CreateEventForm(
            name="Local Dev Day",
            description="Event created from eventticket check-node",
            venue="Localhost Arena",
            date=str(int(event_date.timestamp())),
            total_tickets="5",
            price="0.05",
        )
    )
    if not notice.success:
        raise click.ClickException(notice.label)
    click.echo(f"Event created. tx hash: {coordinator.last_tx_hash}")

    dashboard = Dashboard(reader)
    await dashboard.load(account)
    click.echo(f"Total events on-chain: {len(dashboard.events)}")

    click.echo("Minting a ticket for event #1...")
    notice = await coordinator.mint_ticket(MintTicketForm(event_id="1"))
    if not notice.success:
        raise click.ClickException(notice.label)
    event = reader.find_cached_event(1)
    price = event.price_eth if event else "0"
    click.echo(f"Ticket minted. tx hash: {coordinator.last_tx_hash} value: {price} ETH")

    await dashboard.load(account)
    ticket_ids = [ticket.ticket_id for ticket in dashboard.tickets]
    click.echo(f"Tickets owned by {account} => {ticket_ids}")
    logger.success("Successfully interacted with the node.")


def main():
    """main function"""
    eventticket_cli()


if __name__ == "__main__":
    main()
