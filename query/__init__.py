"""
Query Package.

Read-only request/response surface over the ledger and candles,
returning structured QueryResult values.
"""

from query.service import QueryResult, ScoreQueryService

__all__ = ["QueryResult", "ScoreQueryService"]
