"""
Inbound quote request parsing.

Body shape:
    {
      "name": "Jane Smith",            required
      "email": "jane@example.com",     optional, the customer copy goes here
      "company": "...", "phone": "...", optional
      "message": "free text",          optional
      "items": [                       required, non-empty, ordered
        {"description": "...", "quantity": 2, "unit_price": 10.5},
        {"description": "...", "quantity": 1, "total_price": 99}
      ]
    }
"""

import re
from dataclasses import dataclass
from typing import List, Optional

from ..core.errors import ValidationError

MAX_MESSAGE_LEN = 5000
MAX_ITEMS = 200
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass
class LineItem:
    description: str
    quantity: float
    unit_price: float
    total_price: float

    @property
    def line_total(self) -> float:
        return round(self.total_price, 2)


@dataclass
class QuoteRequest:
    name: str
    items: List[LineItem]
    email: Optional[str] = None
    company: str = ""
    phone: str = ""
    message: str = ""

    @property
    def subtotal(self) -> float:
        return round(sum(i.total_price for i in self.items), 2)


def _text(payload: dict, key: str, limit: int = 200) -> str:
    val = payload.get(key)
    if val is None:
        return ""
    if not isinstance(val, (str, int, float)) or isinstance(val, bool):
        raise ValidationError(f"'{key}' must be text", field=key)
    return str(val).strip()[:limit]


def _number(item: dict, key: str, idx: int) -> Optional[float]:
    val = item.get(key)
    if val is None or val == "":
        return None
    if isinstance(val, bool):
        raise ValidationError(f"items[{idx}].{key} must be a number", field=f"items[{idx}].{key}")
    try:
        num = float(val)
    except (TypeError, ValueError):
        raise ValidationError(f"items[{idx}].{key} must be a number", field=f"items[{idx}].{key}") from None
    if num != num or num in (float("inf"), float("-inf")):
        raise ValidationError(f"items[{idx}].{key} must be finite", field=f"items[{idx}].{key}")
    return num


def _parse_item(raw, idx: int) -> LineItem:
    if not isinstance(raw, dict):
        raise ValidationError(f"items[{idx}] must be an object", field=f"items[{idx}]")

    description = str(raw.get("description") or raw.get("name") or "").strip()
    if not description:
        raise ValidationError(f"items[{idx}].description is required", field=f"items[{idx}].description")

    qty = _number(raw, "quantity", idx)
    if qty is None or qty <= 0:
        raise ValidationError(f"items[{idx}].quantity must be positive", field=f"items[{idx}].quantity")

    unit = _number(raw, "unit_price", idx)
    total = _number(raw, "total_price", idx)
    if unit is None and total is None:
        raise ValidationError(f"items[{idx}] needs unit_price or total_price", field=f"items[{idx}]")
    if (unit is not None and unit < 0) or (total is not None and total < 0):
        raise ValidationError(f"items[{idx}] prices must not be negative", field=f"items[{idx}]")

    if total is None:
        total = unit * qty
    if unit is None:
        unit = total / qty
    return LineItem(description=description[:1000], quantity=qty,
                    unit_price=unit, total_price=total)


def parse_quote_request(payload) -> QuoteRequest:
    """Validate a decoded JSON body. Raises ValidationError."""
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    name = _text(payload, "name")
    if not name:
        raise ValidationError("'name' is required", field="name")

    email = _text(payload, "email", 254) or None
    if email and not _EMAIL_RE.match(email):
        raise ValidationError("'email' is not a valid address", field="email")

    items = payload.get("items")
    if not isinstance(items, list) or not items:
        raise ValidationError("'items' must be a non-empty list", field="items")
    if len(items) > MAX_ITEMS:
        raise ValidationError(f"at most {MAX_ITEMS} items per request", field="items")

    return QuoteRequest(
        name=name,
        email=email,
        company=_text(payload, "company"),
        phone=_text(payload, "phone", 50),
        message=_text(payload, "message", MAX_MESSAGE_LEN),
        items=[_parse_item(raw, i) for i, raw in enumerate(items)],
    )
