"""Binds the single outstanding randomness request to the in-flight draw."""

from __future__ import annotations

from typing import Optional


class RequestCorrelator:
    def __init__(self) -> None:
        self._request_id: Optional[int] = None

    @property
    def outstanding(self) -> Optional[int]:
        return self._request_id

    def record(self, request_id: int) -> None:
        self._request_id = request_id

    def matches(self, request_id: int) -> bool:
        return self._request_id is not None and self._request_id == request_id

    def validate_and_clear(self, request_id: int) -> bool:
        """Clear and return True only when `request_id` is the outstanding one."""
        if not self.matches(request_id):
            return False
        self._request_id = None
        return True

    def clear(self) -> Optional[int]:
        request_id, self._request_id = self._request_id, None
        return request_id
