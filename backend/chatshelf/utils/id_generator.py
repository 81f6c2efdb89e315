"""ID generation utilities."""

import uuid


def generate_id() -> str:
    """Generate an opaque random identifier (UUIDv4 string).

    Example: 3f2b8c1e-9a4d-4e6f-8b2a-1c5d7e9f0a3b
    """
    return str(uuid.uuid4())
