"""Exceptions raised by the supporters sync."""

from __future__ import annotations


class SupportersError(Exception):
    """Base class for failures that abort a sync run."""


class LedgerError(SupportersError):
    """The Open Collective API could not be queried or returned garbage."""


class AssetError(SupportersError):
    """An avatar could not be downloaded."""

    def __init__(self, supporter_id: str, url: str, reason: str) -> None:
        super().__init__(f"Avatar for {supporter_id} ({url}): {reason}")
        self.supporter_id = supporter_id
        self.url = url
