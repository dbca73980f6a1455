from __future__ import annotations

import importlib

from loguru import logger

from eventticket.registries.base import Registry
from eventticket.settings import settings

from .fake import FakeRegistry
from .jsonrpc import JsonRpcRegistry
from .void import VoidRegistry


def set_registry(class_name: str | None = None) -> Registry:
    registry_class = class_name or settings.eventticket_registry_class
    if registry_class == "JsonRpcRegistry" and not settings.is_configured:
        logger.warning(
            "No EventTicket contract address configured, falling back to"
            " VoidRegistry."
        )
        registry_class = "VoidRegistry"
    registry_constructor = getattr(registries_module, registry_class)
    global registry
    registry = registry_constructor()
    return registry


def get_registry() -> Registry:
    return registry


registries_module = importlib.import_module("eventticket.registries")
void_registry = VoidRegistry()

# initialize as void registry until the client starts
registry: Registry = void_registry


__all__ = [
    "FakeRegistry",
    "JsonRpcRegistry",
    "Registry",
    "VoidRegistry",
    "get_registry",
    "set_registry",
]
