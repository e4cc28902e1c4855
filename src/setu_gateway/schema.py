"""
Catalog item schema and validation.

A CatalogItem is the canonical product offer broadcast to buyers. The only
way to get one is through validate(), which checks a candidate object
against the structural rules and normalizes it:

    {
      "descriptor": {"name": "<string>", "symbol": "<string>"},
      "price": {"value": <number >= 0>, "currency": "<3-letter code>"},
      "quantity": {"available": {"count": <integer >= 0>}, "unit": "<string>"},
      "tags": {"grade": "<string?>", "perishability": "<string?>",
               "logistics_provider": "<string?>"}
    }

The models mirror the wire shape, so model_dump() is the wire form.
"""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import FieldError, ValidationError

DEFAULT_CURRENCY = "INR"
DEFAULT_UNIT = "kg"
DEFAULT_SYMBOL = "/icons/default.png"

# Per-unit asking price ceiling; keeps bid arithmetic in range
MAX_PRICE_VALUE = 1_000_000_000

TAG_FIELDS = ("grade", "perishability", "logistics_provider")

CURRENCY_PATTERN = r"^[A-Za-z]{3}$"

# Output constraint handed to the completion capability. Written out by hand
# because Gemini's responseSchema accepts neither $ref nor anyOf.
CATALOG_ITEM_JSON_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "descriptor": {
            "type": "object",
            "properties": {
                "name": {"type": "string"},
                "symbol": {"type": "string"},
            },
            "required": ["name"],
        },
        "price": {
            "type": "object",
            "properties": {
                "value": {"type": "number"},
                "currency": {"type": "string"},
            },
            "required": ["value"],
        },
        "quantity": {
            "type": "object",
            "properties": {
                "available": {
                    "type": "object",
                    "properties": {"count": {"type": "integer"}},
                    "required": ["count"],
                },
                "unit": {"type": "string"},
            },
            "required": ["available"],
        },
        "tags": {
            "type": "object",
            "properties": {name: {"type": "string"} for name in TAG_FIELDS},
        },
    },
    "required": ["descriptor", "price", "quantity"],
}


def _coerce_number(value: Any) -> Any:
    """Accept numeric strings ("1,200", " 40.5 "); refuse booleans."""
    if isinstance(value, bool):
        raise ValueError("must be a number, not a boolean")
    if isinstance(value, str):
        try:
            return float(value.strip().replace(",", ""))
        except ValueError:
            raise ValueError(f"must be a number, got {value!r}") from None
    return value


def _blank_to(value: Any, default: Any) -> Any:
    """Map None or a blank string to a default; strip other strings."""
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip() or default
    return value


class _Section(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class Descriptor(_Section):
    """Product name and visual asset reference."""

    name: str = Field(min_length=1)
    symbol: str = DEFAULT_SYMBOL

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("symbol", mode="before")
    @classmethod
    def default_symbol(cls, value: Any) -> Any:
        return _blank_to(value, DEFAULT_SYMBOL)


class Price(_Section):
    """Asking price per unit."""

    value: float = Field(ge=0, le=MAX_PRICE_VALUE, allow_inf_nan=False)
    currency: str = Field(default=DEFAULT_CURRENCY, pattern=CURRENCY_PATTERN)

    @field_validator("value", mode="before")
    @classmethod
    def coerce_value(cls, value: Any) -> Any:
        number = _coerce_number(value)
        # Integers too large for a float never reach the range check
        if isinstance(number, int) and number > MAX_PRICE_VALUE:
            raise ValueError(f"must be <= {MAX_PRICE_VALUE}")
        return number

    @field_validator("currency", mode="before")
    @classmethod
    def default_currency(cls, value: Any) -> Any:
        return _blank_to(value, DEFAULT_CURRENCY)

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, value: str) -> str:
        return value.upper()


class Available(_Section):
    """Count of units on offer."""

    count: int = Field(ge=0)

    @field_validator("count", mode="before")
    @classmethod
    def coerce_count(cls, value: Any) -> Any:
        number = _coerce_number(value)
        if isinstance(number, float) and number.is_integer():
            return int(number)
        return number


class Quantity(_Section):
    """Available quantity and its unit."""

    available: Available
    unit: str = DEFAULT_UNIT

    @field_validator("unit", mode="before")
    @classmethod
    def default_unit(cls, value: Any) -> Any:
        return _blank_to(value, DEFAULT_UNIT)

    @property
    def count(self) -> int:
        return self.available.count


class Tags(_Section):
    """Optional descriptive tags. Absent tags stay None."""

    grade: str | None = None
    perishability: str | None = None
    logistics_provider: str | None = None

    @field_validator(*TAG_FIELDS, mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        return _blank_to(value, None)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, omitting absent tags."""
        return self.model_dump(exclude_none=True)


class CatalogItem(_Section):
    """A validated product offer."""

    descriptor: Descriptor
    price: Price
    quantity: Quantity
    tags: Tags = Field(default_factory=Tags)

    @field_validator("tags", mode="before")
    @classmethod
    def default_tags(cls, value: Any) -> Any:
        return {} if value is None else value

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire shape."""
        return self.model_dump(exclude_none=True)

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), indent=None)

    @classmethod
    def from_json(cls, text: str) -> "CatalogItem":
        """Parse and validate a JSON string."""
        return validate(json.loads(text))


def _field_errors(error: PydanticValidationError) -> list[FieldError]:
    """Flatten pydantic's error list into dotted-path FieldErrors."""
    return [
        FieldError(".".join(str(part) for part in err["loc"]), err["msg"])
        for err in error.errors()
    ]


def validate(candidate: Any) -> CatalogItem:
    """
    Check and normalize a candidate catalog object.

    Args:
        candidate: A mapping in the wire shape, or an existing CatalogItem

    Returns:
        The normalized CatalogItem. An existing CatalogItem is returned as-is.

    Raises:
        ValidationError: listing every field that broke a rule
    """
    if isinstance(candidate, CatalogItem):
        return candidate

    try:
        return CatalogItem.model_validate(candidate)
    except PydanticValidationError as e:
        raise ValidationError(_field_errors(e)) from e


def collect_errors(candidate: Any) -> list[FieldError]:
    """Return the schema violations of a candidate without raising."""
    try:
        validate(candidate)
    except ValidationError as e:
        return e.errors
    return []


def is_valid(candidate: Any) -> bool:
    """Check if a candidate passes validation."""
    return not collect_errors(candidate)
