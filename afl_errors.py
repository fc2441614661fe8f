# afl_errors.py
from typing import Optional


class FetchError(Exception):
    """A source dataset could not be retrieved. Fatal for the run."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to fetch {url}: {reason}")


class ParseError(ValueError):
    """A field of a fixed-width row could not be parsed."""

    def __init__(self, field: str, value, row: Optional[int] = None):
        self.field = field
        self.value = value
        self.row = row
        where = f"row {row}: " if row is not None else ""
        super().__init__(f"{where}could not parse {field} from {value!r}")


class UnmatchedRecordWarning(UserWarning):
    """Schedule records left without a crowd figure after both join passes."""
