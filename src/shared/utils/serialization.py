# /src/shared/utils/serialization.py
"""
Safe JSON helpers with support for datetime, UUID, Decimal.

``canonical_dumps`` is the byte-exact form used for signed webhook bodies:
sorted keys, compact separators, UTF-8.
"""

from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID


class SafeEncoder(json.JSONEncoder):
    def default(self, o: Any):
        if isinstance(o, (datetime,)):
            return o.isoformat()
        if isinstance(o, (UUID,)):
            return str(o)
        if isinstance(o, (Decimal,)):
            return float(o)
        return super().default(o)


def canonical_dumps(data: Any) -> bytes:
    return json.dumps(
        data,
        separators=(",", ":"),
        sort_keys=True,
        ensure_ascii=False,
        cls=SafeEncoder,
    ).encode("utf-8")
