"""Random filler text for ``{{category.field}}`` placeholders.

Filler runs before interpretation on every template leaf. It knows
nothing about the request: ``{{name.firstName}}`` or ``{{first_name}}``
becomes a fresh Faker value on every call.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from functools import lru_cache
from typing import Any

from faker import Faker

from specmock.interpolation import render_value

logger = logging.getLogger(__name__)

FILLER_PATTERN = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_.]*)\s*\}\}")

# Common names that do not map onto a Faker formatter by snake-casing alone.
ALIASES: dict[str, str] = {
    "name.findname": "name",
    "name.fullname": "name",
    "name.jobtitle": "job",
    "company.companyname": "company",
    "company.catchphrase": "catch_phrase",
    "internet.username": "user_name",
    "internet.avatar": "image_url",
    "internet.url": "url",
    "address.zipcode": "postcode",
    "address.streetaddress": "street_address",
    "address.country": "country",
    "phone.phonenumber": "phone_number",
    "random.number": "random_int",
    "random.uuid": "uuid4",
    "datatype.number": "random_int",
    "datatype.uuid": "uuid4",
    "datatype.boolean": "boolean",
    "lorem.paragraph": "paragraph",
    "lorem.words": "sentence",
    "date.past": "past_datetime",
    "date.future": "future_datetime",
    "date.recent": "date_time_this_month",
    "finance.amount": "pricetag",
    "finance.account": "bban",
    "commerce.productname": "catch_phrase",
    "image.imageurl": "image_url",
    "system.filename": "file_name",
}

# Formatters that need optional packages, build archives or return binary data.
EXCLUDED: frozenset[str] = frozenset(
    {
        "binary",
        "csv",
        "dsv",
        "fixed_width",
        "image",
        "json",
        "json_bytes",
        "psv",
        "tar",
        "tsv",
        "xml",
        "zip",
    }
)

_CAMEL = re.compile(r"(?<!^)(?=[A-Z])")


def _snake(name: str) -> str:
    return _CAMEL.sub("_", name).lower()


class FakerFiller:
    """Callable that fills a template string with Faker output.

    Only public formatter methods of the loaded providers can be reached,
    so a template cannot touch Faker's seeding or provider management.
    Unknown names are left in place.
    """

    def __init__(self, locale: str = "en_US", seed: int | None = None) -> None:
        """Initialize the filler.

        Args:
            locale: Faker locale used for every generated value.
            seed: Optional seed for reproducible output.
        """
        self.faker = Faker(locale)
        if seed is not None:
            self.faker.seed_instance(seed)
        self.formatters = _formatter_names(self.faker)

    def __call__(self, template: str) -> str:
        if "{{" not in template:
            return template
        return FILLER_PATTERN.sub(self._replace, template)

    def _replace(self, match: re.Match[str]) -> str:
        formatter = self.resolve(match.group(1))
        if formatter is None:
            logger.debug("No filler generator for %r", match.group(1))
            return match.group(0)
        try:
            return render_value(formatter())
        except (TypeError, ValueError) as exc:
            logger.debug("Filler generator %r failed: %s", match.group(1), exc)
            return match.group(0)

    def resolve(self, name: str) -> Callable[[], Any] | None:
        """Find the Faker formatter for a ``category.field`` or bare name."""
        category, _, field = name.rpartition(".")
        candidates = [ALIASES.get(name.lower(), ""), _snake(field)]
        if category:
            candidates.append(f"{_snake(category)}_{_snake(field)}")
            candidates.append(_snake(category))

        for candidate in candidates:
            if candidate in self.formatters:
                return getattr(self.faker, candidate)
        return None


def _formatter_names(faker: Faker) -> frozenset[str]:
    names: set[str] = set()
    for provider in faker.get_providers():
        for attr in dir(provider):
            if attr.startswith("_") or attr in EXCLUDED:
                continue
            if callable(getattr(provider, attr, None)):
                names.add(attr)
    return frozenset(names)


def list_generators(
    category: str = "all",
    filler: FakerFiller | None = None,
) -> list[tuple[str, str]]:
    """List ``category.formatter`` names with one sample value each.

    Args:
        category: Provider category (``address``, ``internet``...) or ``all``.
        filler: Filler to sample from; a default one is used if omitted.

    Returns:
        Sorted ``(placeholder, sample)`` pairs.
    """
    filler = filler or default_filler()
    rows: list[tuple[str, str]] = []
    for provider in filler.faker.get_providers():
        group = _provider_category(provider)
        if category != "all" and group != category:
            continue
        for attr in sorted(dir(provider)):
            if attr.startswith("_") or attr not in filler.formatters:
                continue
            try:
                sample = render_value(getattr(filler.faker, attr)())
            except (TypeError, ValueError):
                continue
            rows.append((f"{group}.{attr}", sample))
    return sorted(set(rows))


def _provider_category(provider: Any) -> str:
    module = type(provider).__module__
    parts = module.split(".")
    if len(parts) > 2 and parts[:2] == ["faker", "providers"]:
        return parts[2]
    return "base"


@lru_cache(maxsize=8)
def default_filler(locale: str = "en_US", seed: int | None = None) -> FakerFiller:
    """Shared filler instance per locale/seed."""
    return FakerFiller(locale=locale, seed=seed)
