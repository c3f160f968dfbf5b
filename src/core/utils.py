"""Id and timestamp helpers shared by the engine components."""

import uuid
from datetime import datetime, timezone


def new_id() -> str:
    """Return a new random entity id."""
    return str(uuid.uuid4())


def utc_now() -> str:
    """Return the current UTC time as an ISO 8601 string with microseconds."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")
