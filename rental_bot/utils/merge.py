"""Dictionary merge used for partial record updates."""

import copy
from typing import Any, Mapping


def deep_merge(base: Mapping[str, Any], partial: Mapping[str, Any]) -> dict[str, Any]:
    """Merge partial into base, recursing into nested mappings.

    Neither argument is modified. Nested mappings present on both sides are
    merged key by key; any other value in partial replaces the one in base.

    Example:
        >>> deep_merge({"anti_spam": {"anti_link": False, "anti_call": True}},
        ...            {"anti_spam": {"anti_link": True}})
        {'anti_spam': {'anti_link': True, 'anti_call': True}}
    """
    merged = copy.deepcopy(dict(base))
    for key, value in partial.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged
