"""Request schema for the shift map endpoint."""

from __future__ import annotations

import re
from datetime import date

from pydantic import RootModel, field_validator

DATE_KEY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class ShiftMap(RootModel[dict[str, str]]):
    """``{"YYYY-MM-DD": label_id}``; keys must be real calendar dates."""

    @field_validator("root")
    @classmethod
    def check_date_keys(cls, v: dict[str, str]) -> dict[str, str]:
        for key in v:
            if not DATE_KEY_PATTERN.match(key):
                msg = f"Invalid date key: {key!r} (expected YYYY-MM-DD)"
                raise ValueError(msg)
            try:
                date.fromisoformat(key)
            except ValueError:
                msg = f"Invalid date key: {key!r}"
                raise ValueError(msg) from None
        return v
