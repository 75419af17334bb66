"""SKU and option summary helpers.

Every variant SKU and option summary is derived from the root prefix and
the ordered option values of the variant; nothing here touches storage.
"""

import re
from collections.abc import Iterable, Sequence

from dairycart.domain.exceptions import InvariantViolationError

_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9]+")

SKU_SEPARATOR = "-"


def slugify(text: str) -> str:
    """Turn option value text into a SKU-safe token.

    Lower-cases the text and collapses every run of non-alphanumeric
    characters into a single hyphen, trimming hyphens at either end.

    Example:
        >>> slugify("Extra  Large!")
        'extra-large'
    """
    return _NON_ALPHANUMERIC.sub(SKU_SEPARATOR, text.lower()).strip(SKU_SEPARATOR)


def require_slug(text: str) -> str:
    """Slugify text, rejecting values that leave nothing for the SKU.

    Raises:
        InvariantViolationError: If the slug is empty.
    """
    slug = slugify(text)
    if not slug:
        raise InvariantViolationError(
            f"'{text}' does not contain any characters usable in a SKU",
            details={"value": text},
        )
    return slug


def build_sku(prefix: str, values: Sequence[str]) -> str:
    """Build a variant SKU from the root prefix and ordered option values.

    A root without options yields its prefix unchanged.
    """
    return SKU_SEPARATOR.join([prefix, *(slugify(value) for value in values)])


def build_option_summary(pairs: Iterable[tuple[str, str]]) -> str:
    """Render ``(option name, value)`` pairs as ``"Color: Red, Size: S"``."""
    return ", ".join(f"{name}: {value}" for name, value in pairs)
