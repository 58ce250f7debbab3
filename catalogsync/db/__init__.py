from catalogsync.db.database import create_tables, get_session, init_db
from catalogsync.db.operations import (
    card_set_to_model,
    card_to_model,
    count_cards_in_set,
    create_card_set,
    get_card_set,
    get_card_sets,
    get_cards_by_set,
    insert_card,
    update_set_total_cards,
)
from catalogsync.db.store import CatalogStore, SqlCatalogStore

__all__ = [
    "CatalogStore",
    "SqlCatalogStore",
    "card_set_to_model",
    "card_to_model",
    "count_cards_in_set",
    "create_card_set",
    "create_tables",
    "get_card_set",
    "get_card_sets",
    "get_cards_by_set",
    "get_session",
    "init_db",
    "insert_card",
    "update_set_total_cards",
]
