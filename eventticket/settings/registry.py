from __future__ import annotations

from typing import Optional

from eth_utils import is_address, to_checksum_address
from pydantic import Field, field_validator

from .base import EventTicketSettings


class JsonRpcRegistrySettings(EventTicketSettings):
    rpc_url: str = Field(default="http://127.0.0.1:8545")
    chain_id: int = Field(default=31337)
    event_ticket_address: Optional[str] = Field(default=None)
    # account used as `from` for writes, the node must hold its key
    account_address: Optional[str] = Field(default=None)
    receipt_poll_interval: float = Field(default=1.0)
    # 0 waits for the receipt forever
    receipt_timeout: float = Field(default=0)

    @field_validator("event_ticket_address", "account_address", mode="before")
    @classmethod
    def validate_address(cls, val):
        if val is None:
            return None
        val = str(val).strip()
        if not val:
            return None
        if not is_address(val):
            raise ValueError(f"Invalid address: '{val}'.")
        return to_checksum_address(val)

    @field_validator("chain_id")
    @classmethod
    def validate_chain_id(cls, val: int) -> int:
        if val <= 0:
            raise ValueError("chain_id must be a positive integer.")
        return val


class FakeRegistrySettings(EventTicketSettings):
    fake_registry_account: str = Field(
        default="0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
    )


class RegistrySettings(JsonRpcRegistrySettings, FakeRegistrySettings):
    eventticket_registry_class: str = Field(default="JsonRpcRegistry")
