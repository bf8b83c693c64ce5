"""Marketplace client construction from settings."""

import structlog

from marketcat.infrastructure.config import Settings
from marketcat.infrastructure.hepsiburada import HepsiburadaClient
from marketcat.infrastructure.marketplace_client import MarketplaceClient
from marketcat.infrastructure.temu import TemuClient
from marketcat.infrastructure.trendyol import TrendyolClient

logger = structlog.get_logger()

CLIENT_CLASSES: dict[str, type[TrendyolClient | HepsiburadaClient | TemuClient]] = {
    "trendyol": TrendyolClient,
    "hepsiburada": HepsiburadaClient,
    "temu": TemuClient,
}


def create_marketplace_clients(settings: Settings) -> dict[str, MarketplaceClient]:
    """Create a client for every enabled marketplace.

    Args:
        settings: Application settings.

    Returns:
        Clients keyed by marketplace name, in declaration order.
    """
    clients: dict[str, MarketplaceClient] = {}
    for name, client_class in CLIENT_CLASSES.items():
        if not getattr(settings, f"{name}_enabled"):
            logger.info("Marketplace disabled", marketplace=name)
            continue
        clients[name] = client_class.from_settings(settings)
    return clients
