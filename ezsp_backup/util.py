from __future__ import annotations

from typing import Any

import ezsp_backup.types as t


def channels_mask_to_list(mask: int) -> list[int]:
    """Decodes a channel bitmask into an ascending list of channel numbers.

    Raises `ValueError` if the mask is not a 32-bit integer or if bits outside of
    channels 11-26 are set.
    """

    if isinstance(mask, bool) or not isinstance(mask, int):
        raise ValueError(f"Channel mask must be an integer: {mask!r}")

    if not 0 <= mask <= t.uint32_t.max_value:
        raise ValueError(f"Channel mask is not a 32-bit value: {mask:#x}")

    return list(t.Channels(mask))


def checked_int(cls: type[t.uint_t], value: Any) -> t.uint_t:
    """Converts an integer into `cls`, refusing booleans, floats and strings.

    Raises `ValueError` for anything else, including values out of range.
    """

    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Expected an integer, got {value!r}")

    return cls(value)
