"""Connector registry: maps source names to connector classes."""

import logging
from typing import Type

from unjobs.config import get_settings
from unjobs.connectors.base import BaseConnector

logger = logging.getLogger(__name__)

# Source name -> connector class, in registration order
_REGISTRY: dict[str, Type[BaseConnector]] = {}


def register_connector(name: str):
    """Decorator to register a connector class under a source name."""
    def decorator(cls: Type[BaseConnector]):
        if name in _REGISTRY and _REGISTRY[name] is not cls:
            raise ValueError(f"Connector already registered for source: {name}")
        cls.name = name
        _REGISTRY[name] = cls
        logger.debug(f"Registered connector for source: {name}")
        return cls
    return decorator


def get_connector_class(name: str) -> Type[BaseConnector] | None:
    """Look up the connector class for a given source."""
    return _REGISTRY.get(name)


def list_sources() -> list[str]:
    """List all registered sources."""
    return list(_REGISTRY.keys())


def build_connectors(names: list[str] | None = None, **kwargs) -> list[BaseConnector]:
    """Instantiate connectors in a fixed order.

    names defaults to the enabled_connectors setting, or every registered
    source when that is empty. Unknown names raise ValueError.
    """
    names = names or get_settings().enabled_connectors or list_sources()

    unknown = [n for n in names if n not in _REGISTRY]
    if unknown:
        raise ValueError(f"No connector registered for: {', '.join(unknown)}")

    return [_REGISTRY[n](**kwargs) for n in names]
