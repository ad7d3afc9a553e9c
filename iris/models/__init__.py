from .query import QueryFailure, QueryOutcome, QueryRequest, QueryResponse, sanitize_text

__all__ = [
    "QueryFailure",
    "QueryOutcome",
    "QueryRequest",
    "QueryResponse",
    "sanitize_text",
]
