import asyncio
import json
from itertools import count
from typing import Any, Optional

import httpx
from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector, is_address
from loguru import logger

from eventticket.core.models import Event, Ticket
from eventticket.exceptions import (
    EventTicketError,
    RejectedError,
    RevertedError,
    TransportError,
)
from eventticket.helpers import normalize_endpoint
from eventticket.settings import settings

from .base import (
    Registry,
    StatusResponse,
    TxFailedReceipt,
    TxReceipt,
    TxResponse,
    TxSuccessReceipt,
)

EVENT_TUPLE = "(uint256,string,string,uint256,string,address,uint256,uint256,uint256,bool)"
TICKET_TUPLE = "(uint256,uint256,address,uint256,uint256,bool)"

# selector of solidity's Error(string)
ERROR_SELECTOR = bytes.fromhex("08c379a0")
USER_REJECTED_CODE = 4001
EXECUTION_REVERTED_CODE = 3


def encode_call(signature: str, types: list[str], args: list[Any]) -> str:
    data = function_signature_to_4byte_selector(signature)
    if types:
        data += encode(types, args)
    return "0x" + data.hex()


def decode_revert_reason(data: Optional[str]) -> Optional[str]:
    if not data or not isinstance(data, str):
        return None
    try:
        raw = bytes.fromhex(data.removeprefix("0x"))
    except ValueError:
        return None
    if not raw.startswith(ERROR_SELECTOR):
        return None
    try:
        (reason,) = decode(["string"], raw[4:])
    except DecodingError:
        return None
    return reason


def rpc_error(error: dict) -> EventTicketError:
    code = error.get("code")
    message = str(error.get("message") or "Unknown RPC error.")
    data = error.get("data")
    if isinstance(data, dict):
        data = data.get("data")

    if code == USER_REJECTED_CODE or "user rejected" in message.lower():
        return RejectedError(message)
    if code == EXECUTION_REVERTED_CODE or "revert" in message.lower():
        reason = decode_revert_reason(data)
        return RevertedError(f"execution reverted: {reason}" if reason else message)
    return TransportError(message)


class JsonRpcRegistry(Registry):
    """EventTicket contract behind an Ethereum JSON-RPC node."""

    def __init__(self):
        if not settings.event_ticket_address:
            raise ValueError(
                "cannot initialize JsonRpcRegistry: missing event_ticket_address"
            )
        self.endpoint = normalize_endpoint(settings.rpc_url)
        self.address = settings.event_ticket_address
        self.account = settings.account_address
        self._ids = count(1)
        headers = {"User-Agent": settings.user_agent}
        self.client = httpx.AsyncClient(base_url=self.endpoint, headers=headers)

    async def cleanup(self):
        try:
            await self.client.aclose()
        except RuntimeError as e:
            logger.warning(f"Error closing registry connection: {e}")

    async def _rpc(self, method: str, params: list) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        try:
            r = await self.client.post("/", json=payload)
            r.raise_for_status()
            data = r.json()
        except json.JSONDecodeError as exc:
            raise TransportError("Server error: 'invalid json response'") from exc
        except httpx.HTTPStatusError as exc:
            raise TransportError(f"Server error: '{exc.response.text}'") from exc
        except httpx.HTTPError as exc:
            logger.warning(exc)
            raise TransportError(f"Unable to connect to {self.endpoint}.") from exc

        if "error" in data:
            raise rpc_error(data["error"])
        if "result" not in data:
            raise TransportError("Server error: 'missing result'")
        return data["result"]

    async def _call(
        self, signature: str, types: list[str], args: list[Any], returns: list[str]
    ) -> tuple:
        tx = {"to": self.address, "data": encode_call(signature, types, args)}
        try:
            result = await self._rpc("eth_call", [tx, "latest"])
        except RevertedError as exc:
            raise TransportError(exc.message) from exc
        try:
            return decode(returns, bytes.fromhex(result.removeprefix("0x")))
        except (DecodingError, ValueError, AttributeError) as exc:
            raise TransportError(
                f"Could not decode '{signature}' response: {exc!s}"
            ) from exc

    async def status(self) -> StatusResponse:
        try:
            chain_id = int(await self._rpc("eth_chainId", []), 16)
            if chain_id != settings.chain_id:
                return StatusResponse(
                    f"Connected to chain {chain_id}, expected {settings.chain_id}."
                )
            (name,) = await self._call("name()", [], [], ["string"])
        except EventTicketError as exc:
            return StatusResponse(exc.message)
        return StatusResponse(None, name)

    async def default_account(self) -> Optional[str]:
        if self.account:
            return self.account
        accounts = await self._rpc("eth_accounts", [])
        if accounts and is_address(accounts[0]):
            self.account = accounts[0]
        return self.account

    async def total_events(self) -> int:
        (total,) = await self._call("totalEvents()", [], [], ["uint256"])
        return total

    async def get_event(self, event_id: int) -> Event:
        (raw,) = await self._call(
            "getEvent(uint256)", ["uint256"], [event_id], [EVENT_TUPLE]
        )
        return Event(
            event_id=raw[0],
            name=raw[1],
            description=raw[2],
            event_date=raw[3],
            venue=raw[4],
            creator=raw[5],
            total_tickets=raw[6],
            tickets_sold=raw[7],
            price=raw[8],
            is_active=raw[9],
        )

    async def get_owner_tickets(self, owner: str) -> list[int]:
        (ticket_ids,) = await self._call(
            "getOwnerTickets(address)", ["address"], [owner], ["uint256[]"]
        )
        return list(ticket_ids)

    async def get_ticket(self, ticket_id: int) -> Ticket:
        (raw,) = await self._call(
            "getTicket(uint256)", ["uint256"], [ticket_id], [TICKET_TUPLE]
        )
        return Ticket(
            ticket_id=raw[0],
            event_id=raw[1],
            owner=raw[2],
            purchase_price=raw[3],
            purchase_time=raw[4],
            is_valid=raw[5],
        )

    async def create_event(
        self,
        name: str,
        description: str,
        event_date: int,
        venue: str,
        total_tickets: int,
        price: int,
    ) -> TxResponse:
        data = encode_call(
            "createEvent(string,string,uint256,string,uint256,uint256)",
            ["string", "string", "uint256", "string", "uint256", "uint256"],
            [name, description, event_date, venue, total_tickets, price],
        )
        return await self._send(data, 0)

    async def mint_ticket(self, event_id: int, recipient: str, value: int) -> TxResponse:
        data = encode_call(
            "mintTicket(uint256,address)",
            ["uint256", "address"],
            [event_id, recipient],
        )
        return await self._send(data, value)

    async def _send(self, data: str, value: int) -> TxResponse:
        try:
            account = await self.default_account()
            if not account:
                return TxResponse(
                    ok=False, error_message="No account available to sign with."
                )
            tx = {"from": account, "to": self.address, "data": data, "value": hex(value)}
            tx_hash = await self._rpc("eth_sendTransaction", [tx])
        except RejectedError as exc:
            logger.warning(f"JsonRpcRegistry write rejected: {exc.message}")
            return TxResponse(ok=False, error_message=exc.message, rejected=True)
        except EventTicketError as exc:
            logger.warning(f"JsonRpcRegistry write failed: {exc.message}")
            return TxResponse(ok=False, error_message=exc.message)
        return TxResponse(ok=True, tx_hash=tx_hash)

    async def get_receipt(self, tx_hash: str) -> Optional[TxReceipt]:
        receipt = await self._rpc("eth_getTransactionReceipt", [tx_hash])
        if not receipt:
            return None
        block_number = int(receipt.get("blockNumber") or "0x0", 16)
        if int(receipt.get("status") or "0x0", 16) == 1:
            return TxSuccessReceipt(block_number=block_number)
        return TxFailedReceipt(
            block_number=block_number,
            error_message=f"Transaction {tx_hash} reverted.",
        )

    async def wait_for_receipt(self, tx_hash: str) -> TxReceipt:
        async def _poll() -> TxReceipt:
            while settings.eventticket_running:
                receipt = await self.get_receipt(tx_hash)
                if receipt:
                    return receipt
                await asyncio.sleep(settings.receipt_poll_interval)
            raise TransportError("Client is shutting down.")

        if not settings.receipt_timeout:
            return await _poll()
        try:
            return await asyncio.wait_for(_poll(), settings.receipt_timeout)
        except asyncio.TimeoutError as exc:
            raise TransportError(
                f"Transaction {tx_hash} was not included after"
                f" {settings.receipt_timeout} seconds."
            ) from exc
