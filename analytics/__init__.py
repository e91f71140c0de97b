"""
Query layer over the investment table.

Modules:
    base: Store interface and the value objects passed to it
    store: SQLAlchemy (asyncpg) store implementation
    query_builder: Filtered, sorted, offset/cursor paginated reads
    aggregator: Group-by aggregation with separate IDR and USD sums
    metadata_cache: TTL-bounded cache of distinct filter values
    currency: USD to IDR conversion with the APBN rate table
    service: Facade used by the dashboard (retries, sessions, caching)

Usage:
    from analytics.service import InvestmentDataService

    service = InvestmentDataService()
    page = await service.fetch_page({"year": 2023, "page_size": 25})
    buckets = await service.fetch_aggregate("sector", {"status": "PMA"})
    metadata = await service.fetch_metadata()
"""

__all__ = [
    "InvestmentStore",
    "SQLAlchemyInvestmentStore",
    "InvestmentQueryBuilder",
    "Aggregator",
    "MetadataCache",
    "CurrencyNormalizer",
    "InvestmentDataService",
]
