"""
Cart — client-held line items and the totals derived from them.

A cart line is a plain dict in the same shape the browser keeps in local storage:
    {"id", "name", "size", "price", "quantity", "imageUrl", "category"}
``price`` is a display string such as "₹40". Lines are identified by (id, size);
adding a line that already exists bumps its quantity instead of duplicating it.

Storage is injected: anything with ``load() -> list`` and ``save(lines)`` works.
"""

import json
import logging
import os
from collections import defaultdict
from decimal import Decimal

from storefront.errors import ValidationError

logger = logging.getLogger(__name__)

CART_STORAGE_KEY = "cart"

# Category used by category_totals() and on load for lines without one.
DEFAULT_CATEGORY = "default"
# Category used by to_order_draft() for lines without one. Deliberately not
# DEFAULT_CATEGORY; the two fallbacks have always differed.
DRAFT_FALLBACK_CATEGORY = "snacks"

REQUIRED_LINE_FIELDS = ("id", "name", "size", "price", "quantity")

# Order lines store unit prices to the minor unit.
PRICE_DECIMAL_PLACES = 2


def decimal_places(value):
    exponent = Decimal(str(value)).normalize().as_tuple().exponent
    return max(0, -exponent)


def parse_price(price):
    """Turn a display price ("₹40", "$12.50", "40") into a float.

    Strips at most one leading currency glyph. Anything that still isn't a
    number, or has fractions of a minor unit, raises ValidationError rather
    than counting as zero or being rounded later.
    """
    if isinstance(price, bool):
        raise ValidationError(f"Malformed price: {price!r}", error_code="INVALID_PRICE")
    if isinstance(price, (int, float)):
        value = float(price)
    elif isinstance(price, str):
        text = price.strip()
        if text and not (text[0].isdigit() or text[0] in "+-."):
            text = text[1:].strip()
        try:
            value = float(text)
        except ValueError:
            raise ValidationError(f"Malformed price: {price!r}", error_code="INVALID_PRICE")
    else:
        raise ValidationError(f"Malformed price: {price!r}", error_code="INVALID_PRICE")

    if value != value or value in (float("inf"), float("-inf")):
        raise ValidationError(f"Malformed price: {price!r}", error_code="INVALID_PRICE")
    if decimal_places(value) > PRICE_DECIMAL_PLACES:
        raise ValidationError(
            f"Price {price!r} has more than {PRICE_DECIMAL_PLACES} decimal places",
            error_code="INVALID_PRICE",
        )
    return value


def _line_key(line):
    return (str(line["id"]), str(line["size"]))


def _normalize_line(line):
    missing = [f for f in REQUIRED_LINE_FIELDS if line.get(f) in (None, "")]
    if missing:
        raise ValidationError(f"Missing fields: {', '.join(missing)}")

    quantity = line["quantity"]
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError("quantity must be a whole number of at least 1")

    # Fail early on prices that would break totals later.
    parse_price(line["price"])

    return {
        "id": str(line["id"]),
        "name": line["name"],
        "size": str(line["size"]),
        "price": line["price"],
        "quantity": quantity,
        "imageUrl": line.get("imageUrl", ""),
        "category": line.get("category") or "",
    }


class MemoryCartStorage:
    """Keeps the cart in memory. Useful for tests and scripts."""

    def __init__(self, lines=None):
        self.lines = [dict(line) for line in lines or []]

    def load(self):
        return [dict(line) for line in self.lines]

    def save(self, lines):
        self.lines = [dict(line) for line in lines]


class JsonFileCartStorage:
    """A JSON file used like browser local storage: one object, values stored under keys."""

    def __init__(self, path, key=CART_STORAGE_KEY):
        self.path = path
        self.key = key

    def _read_all(self):
        if not os.path.exists(self.path):
            return {}
        with open(self.path, encoding="utf-8") as fh:
            return json.load(fh)

    def load(self):
        return self._read_all().get(self.key, [])

    def save(self, lines):
        data = self._read_all()
        data[self.key] = lines
        with open(self.path, "w", encoding="utf-8") as fh:
            json.dump(data, fh, ensure_ascii=False)


class SessionCartStorage:
    """Cart persisted in the signed Flask session cookie of the current request."""

    def __init__(self, session, key=CART_STORAGE_KEY):
        self.session = session
        self.key = key

    def load(self):
        return self.session.get(self.key, [])

    def save(self, lines):
        self.session[self.key] = lines
        self.session.modified = True


class Cart:
    def __init__(self, storage):
        self.storage = storage
        self.lines = []
        self._load()

    def _load(self):
        try:
            saved = self.storage.load() or []
        except (OSError, ValueError) as e:
            logger.error("Failed to load saved cart: %s", e)
            saved = []

        lines = []
        for item in saved:
            item = dict(item)
            if not item.get("category"):
                item["category"] = DEFAULT_CATEGORY
            lines.append(item)
        self.lines = lines

    def _save(self):
        self.storage.save(self.lines)

    def _find(self, item_id, size):
        key = (str(item_id), str(size))
        for index, line in enumerate(self.lines):
            if _line_key(line) == key:
                return index
        return -1

    def add_line(self, line):
        line = _normalize_line(line)
        index = self._find(line["id"], line["size"])
        if index != -1:
            self.lines[index]["quantity"] += line["quantity"]
        else:
            self.lines.append(line)
        self._save()

    def remove_line(self, item_id, size):
        index = self._find(item_id, size)
        if index == -1:
            return
        del self.lines[index]
        self._save()

    def set_quantity(self, item_id, size, quantity):
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValidationError("quantity must be a whole number")
        if quantity <= 0:
            self.remove_line(item_id, size)
            return

        index = self._find(item_id, size)
        if index == -1:
            return
        self.lines[index]["quantity"] = quantity
        self._save()

    def clear(self):
        self.lines = []
        self._save()

    def total(self):
        return sum(parse_price(line["price"]) * line["quantity"] for line in self.lines)

    def item_count(self):
        return sum(line["quantity"] for line in self.lines)

    def category_totals(self):
        totals = defaultdict(float)
        for line in self.lines:
            category = line.get("category") or DEFAULT_CATEGORY
            totals[category] += parse_price(line["price"]) * line["quantity"]
        return dict(totals)

    def to_order_draft(self, user_id):
        """Expand the cart into one unit-priced product row per unit ordered."""
        products = []
        for line in self.lines:
            unit_price = parse_price(line["price"])
            row = {
                "name": f"{line['name']} ({line['size']})",
                "price": unit_price,
                "category": line.get("category") or DRAFT_FALLBACK_CATEGORY,
            }
            products.extend(dict(row) for _ in range(line["quantity"]))

        return {
            "userId": user_id,
            "products": products,
            "status": "PENDING",
            "categoryTotals": self.category_totals(),
        }

    def to_dict(self):
        return {
            "lines": [dict(line) for line in self.lines],
            "total": self.total(),
            "itemCount": self.item_count(),
            "categoryTotals": self.category_totals(),
        }
