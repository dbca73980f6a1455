from __future__ import annotations

from time import time

from pydantic import Field

from .base import EventTicketSettings


class EnvSettings(EventTicketSettings):
    debug: bool = Field(default=False)
    version: str = Field(default="0.0.0")
    user_agent: str = Field(default="")
    enable_log_to_file: bool = Field(default=False)
    eventticket_data_folder: str = Field(default="./data")
    log_rotation: str = Field(default="100 MB")
    log_retention: str = Field(default="3 months")
    client_startup_time: int = Field(default_factory=lambda: int(time()))
