from catalogsync.clients.catalog_search import (
    AsyncioClock,
    CatalogSearchClient,
    Clock,
    FetchFailed,
    FetchResult,
    FetchSucceeded,
    build_http_client,
    build_query,
    parse_search_response,
)

__all__ = [
    "AsyncioClock",
    "CatalogSearchClient",
    "Clock",
    "FetchFailed",
    "FetchResult",
    "FetchSucceeded",
    "build_http_client",
    "build_query",
    "parse_search_response",
]
