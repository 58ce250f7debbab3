from catalogsync.parsers.product_label import (
    LABEL_RULES,
    Fallback,
    Matched,
    ParseResult,
    parse_product_label,
)

__all__ = [
    "Fallback",
    "LABEL_RULES",
    "Matched",
    "ParseResult",
    "parse_product_label",
]
