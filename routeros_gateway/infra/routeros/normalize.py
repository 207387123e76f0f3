"""Response normalization for RouterOS payloads.

Both protocols identify items with a `.id` key. Callers get one canonical
shape: every mapping also carries that identifier under `id`. The legacy
binary API driver may report field names with underscores where the device
vocabulary uses hyphens (`max_limit` vs `max-limit`), so legacy payloads are
rewritten to the hyphenated form first.

Sequences keep their order; it reflects device ordering (e.g. route priority).
"""

from collections.abc import Mapping
from typing import Any

DEVICE_ID_KEY = ".id"
CANONICAL_ID_KEY = "id"


def _with_canonical_id(item: dict[str, Any]) -> dict[str, Any]:
    if DEVICE_ID_KEY in item:
        item[CANONICAL_ID_KEY] = item[DEVICE_ID_KEY]
    return item


def _normalize_rest_item(item: Any) -> Any:
    if not isinstance(item, Mapping):
        return item
    return _with_canonical_id(dict(item))


def _normalize_legacy_item(item: Any) -> Any:
    if not isinstance(item, Mapping):
        return item
    return _with_canonical_id({str(key).replace("_", "-"): value for key, value in item.items()})


def normalize_rest(payload: Any) -> Any:
    """Normalize a REST payload (single object or list of objects).

    Only `.id` is copied to `id`; field names are left untouched.

    Example:
        >>> normalize_rest({".id": "*1", "some_field": "x"})
        {'.id': '*1', 'some_field': 'x', 'id': '*1'}
    """
    if isinstance(payload, list | tuple):
        return [_normalize_rest_item(item) for item in payload]
    return _normalize_rest_item(payload)


def normalize_legacy(payload: Any) -> Any:
    """Normalize a legacy API payload (single object or list of objects).

    Underscores in field names become hyphens, then `.id` is copied to `id`.

    Example:
        >>> normalize_legacy({".id": "*1", "some_field": "x"})
        {'.id': '*1', 'some-field': 'x', 'id': '*1'}
    """
    if isinstance(payload, list | tuple):
        return [_normalize_legacy_item(item) for item in payload]
    return _normalize_legacy_item(payload)


__all__ = ["normalize_legacy", "normalize_rest"]
