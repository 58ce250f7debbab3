from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class CardSet:
    """
    One collectible set or subset.

    Attributes:
        id: Internal set ID
        name: Display name (e.g., "1992 SkyBox Marvel Masterpieces")
        year: Release year
        total_cards: Reported card count for the set
    """

    id: int
    name: str
    year: int
    total_cards: int = 0


@dataclass
class Card:
    """
    A card owned by exactly one CardSet.

    Attributes:
        set_id: Owning set
        card_number: Printed catalog number ("" when unknown)
        name: Card name
        id: Internal ID, None until persisted
        variation: Variant label, if any
        rarity: Rarity label ("Unknown" for imported cards)
        front_image_url: Image URL from the external product
        estimated_value: Value in dollars
        description: Free-text description
    """

    set_id: int
    card_number: str
    name: str
    id: int | None = None
    variation: str = ""
    rarity: str = "Unknown"
    front_image_url: str = ""
    estimated_value: float = 0.0
    description: str = ""


def _pennies_to_dollars(value: Any) -> float:
    """Provider prices are integer pennies; missing or malformed values are 0."""
    try:
        return round(float(value) / 100.0, 2)
    except (TypeError, ValueError):
        return 0.0


@dataclass(frozen=True, slots=True)
class ExternalProduct:
    """
    A search hit from the product catalog. Never persisted verbatim.

    Attributes:
        id: Provider product ID
        product_name: Free-text label, e.g. "Colossus #64"
        console_name: Provider's grouping, usually the set name
        price_low: Loose price in dollars
        price_mid: Complete-in-box price in dollars
        price_high: New/sealed price in dollars
        image_url: Product image, if any
    """

    id: str
    product_name: str
    console_name: str
    price_low: float = 0.0
    price_mid: float = 0.0
    price_high: float = 0.0
    image_url: str = ""

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "ExternalProduct":
        """Build from one entry of the search response's `products` list."""
        return cls(
            id=str(payload.get("id", "")),
            product_name=str(payload.get("product-name") or ""),
            console_name=str(payload.get("console-name") or ""),
            price_low=_pennies_to_dollars(payload.get("loose-price")),
            price_mid=_pennies_to_dollars(payload.get("cib-price")),
            price_high=_pennies_to_dollars(payload.get("new-price")),
            image_url=str(payload.get("image") or ""),
        )

    @property
    def estimated_value(self) -> float:
        """First non-zero price, preferring the loose price."""
        for price in (self.price_low, self.price_mid, self.price_high):
            if price:
                return price
        return 0.0
