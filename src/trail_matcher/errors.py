from __future__ import annotations


class ProviderUnavailable(Exception):
    """An upstream provider could not be reached or refused the request."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.message = message


class ItemEnrichmentFailed(Exception):
    ...
