"""ULID primary keys: 26 characters, sortable by creation time."""

import ulid


def generate_ulid() -> str:
    return str(ulid.ULID())
