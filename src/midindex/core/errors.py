from __future__ import annotations


class PriceIndexError(Exception):
    """Base class for everything raised inside a venue pipeline."""


class ParseError(PriceIndexError):
    """Venue message could not be decoded into a top-of-book record."""

    def __init__(self, venue: str, message: str):
        super().__init__(f"{venue}: {message}")
        self.venue = venue


class InvalidQuote(PriceIndexError):
    """Bid above ask, or a price that is not a finite number."""


class VenueConnectionError(PriceIndexError, ConnectionError):
    """Stream transport failure. Drives the reconnect backoff."""

    def __init__(self, venue: str, message: str):
        super().__init__(f"{venue}: {message}")
        self.venue = venue


class PullError(PriceIndexError):
    """One-shot REST pull failed. Always swallowed by the poller."""

    def __init__(self, venue: str, pair: str, message: str):
        super().__init__(f"{venue} {pair}: {message}")
        self.venue = venue
        self.pair = pair
