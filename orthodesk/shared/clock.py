"""Reference time for request handling"""

from datetime import datetime


def current_time() -> datetime:
    """
    Clinic-local "now", read once per request.

    Used as a FastAPI dependency so services receive the instant explicitly
    and tests can pin it through dependency_overrides.
    """
    return datetime.now()
