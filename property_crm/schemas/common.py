from typing import Any


def not_null(v: Any) -> Any:
    """PATCH bodies may omit a field, but may not null out a required column."""
    if v is None:
        raise ValueError("may not be null")
    return v
