"""refbook kernel utilities."""

from .json_codec import RecordDecodeError, RecordEncodeError, dumps, loads
from .values import as_value_list, dedupe_by_id, is_empty_value, new_id, value_contains, value_intersects

__all__ = [
    "RecordDecodeError",
    "RecordEncodeError",
    "dumps",
    "loads",
    "as_value_list",
    "dedupe_by_id",
    "is_empty_value",
    "new_id",
    "value_contains",
    "value_intersects",
]
