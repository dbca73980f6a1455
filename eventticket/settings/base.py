from __future__ import annotations

from pydantic import BaseModel


class EventTicketSettings(BaseModel):
    pass
