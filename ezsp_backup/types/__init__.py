from __future__ import annotations

from .basic import *  # noqa: F403
from .named import *  # noqa: F403
