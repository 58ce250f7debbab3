"""
Product label parser.

Extracts a card name and catalog number from one free-text product label.
Rules are pure functions tried in order; the first one that matches wins,
and a fallback always resolves, so parsing never raises.

Supported label shapes:
    Colossus #64                               -> name="Colossus", number="64"
    1992 Marvel Masterpieces #15 Spider-Man    -> name="Spider-Man", number="15"
    Spider-Man [What If] #12                   -> name="Spider-Man [What If]", number="12"
    Wolverine Promo                            -> fallback, name only
"""

import re
from collections.abc import Callable
from dataclasses import dataclass

# Catalog numbers are alphanumeric with dashes (e.g. "64", "I-13", "P3")
_NUMBER = r"([A-Za-z0-9-]+)"

_TRAILING_NUMBER = re.compile(rf"^(.+?)\s+#{_NUMBER}$")
_LEADING_SET_NAME = re.compile(rf"^(.+?)\s+#{_NUMBER}\s+(.+)$")
_BRACKETED_VARIANT = re.compile(rf"^(.+?)\s+\[(.+?)\]\s+#{_NUMBER}$")


@dataclass(frozen=True, slots=True)
class Matched:
    """A label that yielded both a name and a catalog number."""

    name: str
    number: str
    rule: str
    set_name: str = ""


@dataclass(frozen=True, slots=True)
class Fallback:
    """A label with no recognizable catalog number; the whole label is the name."""

    name: str

    @property
    def number(self) -> str:
        return ""


ParseResult = Matched | Fallback


def _trailing_number(label: str) -> Matched | None:
    match = _TRAILING_NUMBER.match(label)
    if not match:
        return None
    name, number = match.groups()
    return Matched(name=name.strip(), number=number.strip(), rule="trailing_number")


def _leading_set_name(label: str) -> Matched | None:
    match = _LEADING_SET_NAME.match(label)
    if not match:
        return None
    set_name, number, name = match.groups()
    return Matched(
        name=name.strip(),
        number=number.strip(),
        rule="leading_set_name",
        set_name=set_name.strip(),
    )


def _bracketed_variant(label: str) -> Matched | None:
    match = _BRACKETED_VARIANT.match(label)
    if not match:
        return None
    name, variant, number = match.groups()
    return Matched(
        name=f"{name.strip()} [{variant.strip()}]",
        number=number.strip(),
        rule="bracketed_variant",
    )


LABEL_RULES: tuple[Callable[[str], Matched | None], ...] = (
    _trailing_number,
    _leading_set_name,
    _bracketed_variant,
)


def parse_product_label(label: str | None) -> ParseResult:
    """
    Parse a product label into a name and catalog number.

    Args:
        label: Provider product name

    Returns:
        Matched from the first rule that applies, otherwise Fallback
    """
    text = label.strip() if isinstance(label, str) else ""

    for rule in LABEL_RULES:
        result = rule(text)
        if result is not None:
            return result

    return Fallback(name=text)
