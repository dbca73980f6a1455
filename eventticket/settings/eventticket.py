from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from eventticket.settings.base import EventTicketSettings
from eventticket.settings.env import EnvSettings
from eventticket.settings.registry import RegistrySettings


class TransientSettings(EventTicketSettings):
    # Transient Settings:
    #  - are initialized, updated and used at runtime
    #  - are not read from the environment
    #  - are cleared on restart

    # Indicates that the client should keep running.
    # Long running polling loops should use this flag instead of `while True:`
    eventticket_running: bool = Field(default=True, exclude=True)


class ReadOnlySettings(EnvSettings, RegistrySettings):
    pass


class Settings(ReadOnlySettings, TransientSettings, BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def is_configured(self) -> bool:
        return self.event_ticket_address is not None

    @property
    def network_id(self) -> str:
        return f"chain-{self.chain_id}"
