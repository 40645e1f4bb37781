"""Market data layer -- price source adapters and the ingestion cycle."""

from ratebot.market_data.ingestion import IngestionService
from ratebot.market_data.price_source import CcxtPriceSource, PriceSource

__all__ = ["CcxtPriceSource", "IngestionService", "PriceSource"]
