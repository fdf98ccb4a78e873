"""Test helpers package"""

from .sqlite import (
    connect_test_db,
    create_schema,
    insert_test_chunk,
    insert_test_video,
)


__all__ = [
    "connect_test_db",
    "create_schema",
    "insert_test_chunk",
    "insert_test_video",
]
