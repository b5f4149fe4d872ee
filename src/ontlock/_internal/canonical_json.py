"""Centralized JSON serialization for files ontlock writes.

Two flavours share the same key ordering:
- ``canonical_dumps``: compact, for hashing and machine comparison
- ``lock_dumps``: indented, for the human-reviewed lock file in version control
"""

import json
from typing import Any


def canonical_dumps(obj: Any) -> str:
    """
    Compact, byte-stable JSON serialization.

    Rules:
    - UTF-8 (no ASCII escaping)
    - Sorted keys
    - Stable separators (",", ":")
    - Lists keep their order (callers sort name lists beforehand)
    """
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False
    )


def lock_dumps(obj: Any) -> str:
    """Serialize a lock record: sorted keys, 2-space indent, trailing newline.

    Diffs of the lock file in code review stay minimal because key order never
    depends on insertion order.
    """
    return json.dumps(obj, sort_keys=True, indent=2, ensure_ascii=False) + "\n"
