"""
Typed views over a product's ``specs`` list.

Products store their category-specific attributes as ``"Label: value"``
strings so the admin UI can edit them as free text. This module turns that
list into a :class:`GeneratorSpecs` or :class:`MineralSpecs` record and builds
the mineral listings served to the storefront. Everything here is pure: the
same spec list always derives the same record.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

DEFAULT_UNIT = "kg"
DEFAULT_AVAILABILITY = "available"
DEFAULT_MINERAL_IMAGE = "/images/minerals/default.jpg"
UPLOADS_PREFIX = "/uploads/"

LISTED_PRICE_REGEX = re.compile(r"₦([\d,]+)")


class DisplayPlacement(str, Enum):
    SHOWCASE = "showcase"
    FOR_SALE = "for-sale"
    BOTH = "both"
    NONE = "none"

    @classmethod
    def parse(cls, value: Optional[str]) -> "DisplayPlacement":
        if value is None:
            return cls.BOTH
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.NONE

    @property
    def shows_in_showcase(self) -> bool:
        return self in (DisplayPlacement.SHOWCASE, DisplayPlacement.BOTH)

    @property
    def shows_for_sale(self) -> bool:
        return self in (DisplayPlacement.FOR_SALE, DisplayPlacement.BOTH)


@dataclass(frozen=True)
class GeneratorSpecs:
    power: str = ""
    fuel: str = ""
    features: tuple[str, ...] = ()
    warranty: str = ""
    usage: str = ""


@dataclass(frozen=True)
class MineralSpecs:
    type: str = ""
    grade: str = ""
    purity: str = ""
    unit: str = DEFAULT_UNIT
    availability: str = DEFAULT_AVAILABILITY
    display_placement: DisplayPlacement = DisplayPlacement.BOTH
    origin: str = ""
    listed_price: Optional[int] = None


ProductSpecs = Union[GeneratorSpecs, MineralSpecs]


def find_spec(specs: Iterable[Any], label: str) -> Optional[str]:
    """
    Return the value of the first ``"<label>: value"`` entry, or ``None``.

    Only the label, its colon and one following space are stripped.
    """

    prefix = f"{label}:"
    for entry in specs or ():
        if isinstance(entry, str) and entry.startswith(prefix):
            value = entry[len(prefix):]
            if value.startswith(" "):
                value = value[1:]
            return value
    return None


def _parse_listed_price(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    match = LISTED_PRICE_REGEX.search(value)
    if not match:
        return None
    return int(match.group(1).replace(",", ""))


def derive_generator_specs(specs: Iterable[Any]) -> GeneratorSpecs:
    features = find_spec(specs, "Features") or ""
    return GeneratorSpecs(
        power=find_spec(specs, "Power") or "",
        fuel=find_spec(specs, "Fuel") or "",
        features=tuple(part.strip() for part in features.split(",") if part.strip()),
        warranty=find_spec(specs, "Warranty") or "",
        usage=find_spec(specs, "Usage") or "",
    )


def derive_mineral_specs(specs: Iterable[Any]) -> MineralSpecs:
    return MineralSpecs(
        type=find_spec(specs, "Type") or "",
        grade=find_spec(specs, "Grade") or "",
        purity=find_spec(specs, "Purity") or "",
        unit=find_spec(specs, "Unit") or DEFAULT_UNIT,
        availability=find_spec(specs, "Availability") or DEFAULT_AVAILABILITY,
        display_placement=DisplayPlacement.parse(find_spec(specs, "DisplayType")),
        origin=find_spec(specs, "Origin") or "",
        listed_price=_parse_listed_price(find_spec(specs, "Price")),
    )


def derive_specs(category: str, specs: Iterable[Any]) -> ProductSpecs:
    if category == "generator":
        return derive_generator_specs(specs)
    if category == "mineral":
        return derive_mineral_specs(specs)
    raise ValueError(f"Unknown product category: {category!r}")


def primary_image(images: Iterable[Any]) -> str:
    for image in images or ():
        if isinstance(image, str) and image:
            return image if image.startswith("/") else f"{UPLOADS_PREFIX}{image}"
    return DEFAULT_MINERAL_IMAGE


def mineral_listing(product) -> Dict[str, Any]:
    """Storefront representation of a mineral product."""

    specs = list(product.specs or [])
    derived = derive_mineral_specs(specs)
    if derived.listed_price is not None:
        price: Union[int, float] = derived.listed_price
    else:
        price = product.price_cents / 100
    return {
        "id": product.pk,
        "name": product.name,
        "description": product.description,
        "image": primary_image(product.images),
        "type": derived.type,
        "grade": derived.grade,
        "price": price,
        "unit": derived.unit,
        "availability": derived.availability,
        "purity": derived.purity,
        "displayType": derived.display_placement.value,
        "specs": specs,
        "price_cents": product.price_cents,
    }


def showcase_listings(products: Iterable[Any]) -> List[Dict[str, Any]]:
    return [
        mineral_listing(product)
        for product in products
        if derive_mineral_specs(product.specs or []).display_placement.shows_in_showcase
    ]


def for_sale_listings(products: Iterable[Any]) -> List[Dict[str, Any]]:
    return [
        mineral_listing(product)
        for product in products
        if derive_mineral_specs(product.specs or []).display_placement.shows_for_sale
    ]


def specs_as_dict(record: ProductSpecs) -> Dict[str, Any]:
    data = asdict(record)
    if isinstance(record, MineralSpecs):
        data["display_placement"] = record.display_placement.value
    else:
        data["features"] = list(record.features)
    return data
