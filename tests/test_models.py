import pytest

from catalogsync.models.catalog import Card, CardSet, ExternalProduct
from catalogsync.models.checkpoint import ImportCheckpoint
from catalogsync.models.failure import (
    FatalConfigError,
    ImportErrorKind,
    ImportErrorRecord,
    InsertFailedError,
)


def fetch_error(set_id: int) -> ImportErrorRecord:
    return ImportErrorRecord(
        kind=ImportErrorKind.FETCH_FAILED, message="HTTP 503", set_id=set_id
    )


class TestCardSet:
    def test_card_set_immutable(self) -> None:
        card_set = CardSet(id=1, name="1992 SkyBox Marvel Masterpieces", year=1992)
        with pytest.raises(AttributeError):
            card_set.name = "Other"  # type: ignore[misc]

    def test_card_defaults(self) -> None:
        card = Card(set_id=1, card_number="64", name="Colossus")
        assert card.id is None
        assert card.rarity == "Unknown"
        assert card.estimated_value == 0.0


class TestExternalProduct:
    def test_from_api_converts_pennies(self) -> None:
        product = ExternalProduct.from_api(
            {
                "id": 12,
                "product-name": "Storm #12",
                "console-name": "1992 Marvel Masterpieces",
                "loose-price": 199,
                "cib-price": 450,
                "new-price": 1000,
            }
        )
        assert product.id == "12"
        assert product.price_low == pytest.approx(1.99)
        assert product.price_mid == pytest.approx(4.50)
        assert product.price_high == pytest.approx(10.00)
        assert product.image_url == ""

    def test_from_api_tolerates_missing_fields(self) -> None:
        product = ExternalProduct.from_api({"id": "x", "loose-price": "n/a"})
        assert product.product_name == ""
        assert product.console_name == ""
        assert product.price_low == 0.0

    def test_estimated_value_prefers_first_nonzero(self) -> None:
        assert ExternalProduct("1", "a", "b", price_low=1.0, price_mid=2.0).estimated_value == 1.0
        assert ExternalProduct("1", "a", "b", price_mid=2.0).estimated_value == 2.0
        assert ExternalProduct("1", "a", "b").estimated_value == 0.0


class TestImportCheckpoint:
    def test_record_counts_errors_and_warnings(self) -> None:
        checkpoint = ImportCheckpoint()
        checkpoint.record(fetch_error(1), max_records=10)
        checkpoint.record(
            ImportErrorRecord(kind=ImportErrorKind.PARSE_AMBIGUOUS, message="no number"),
            max_records=10,
        )

        assert checkpoint.error_count == 1
        assert checkpoint.warning_count == 1
        assert len(checkpoint.errors) == 2

    def test_record_keeps_newest(self) -> None:
        checkpoint = ImportCheckpoint()
        for set_id in range(1, 6):
            checkpoint.record(fetch_error(set_id), max_records=3)

        assert [e.set_id for e in checkpoint.errors] == [3, 4, 5]
        assert checkpoint.error_count == 5

    def test_recent_errors_excludes_warnings(self) -> None:
        checkpoint = ImportCheckpoint()
        checkpoint.record(fetch_error(1), max_records=10)
        checkpoint.record(
            ImportErrorRecord(kind=ImportErrorKind.PARSE_AMBIGUOUS, message="no number"),
            max_records=10,
        )

        assert [e.kind for e in checkpoint.recent_errors()] == [ImportErrorKind.FETCH_FAILED]

    def test_mark_completed_once(self) -> None:
        checkpoint = ImportCheckpoint()
        checkpoint.mark_completed(4)
        checkpoint.mark_completed(4)

        assert checkpoint.completed_set_ids == [4]
        assert checkpoint.is_completed(4)
        assert not checkpoint.is_completed(5)


class TestFailures:
    def test_insert_failed_record(self) -> None:
        error = InsertFailedError("Colossus", "64", detail="duplicate key")
        record = error.to_record(set_id=1, set_name="Masterpieces", product_id="p1")

        assert record.kind == ImportErrorKind.INSERT_FAILED
        assert record.message == "Could not insert card 'Colossus #64' (duplicate key)"
        assert record.summary() == f"insert_failed [Masterpieces]: {record.message}"

    def test_fatal_config_kind(self) -> None:
        error = FatalConfigError("Missing token")
        assert error.kind == ImportErrorKind.FATAL_CONFIG
        assert str(error) == "Missing token"
