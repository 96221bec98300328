"""
Exception hierarchy for the market-cap trader.

- ``ValidationError``: bad user input. Recovered locally by re-prompting.
- ``GatewayError``: a call to an external service (market data, trading API,
  Solana RPC, wallet provisioning) failed.
- ``NotFoundError``: the token has no market pair.
- ``MalformedResponseError``: an external service answered with an
  unexpected payload.
- ``PersistenceError``: the record store could not be read or written.
"""

from __future__ import annotations


class TraderError(Exception):
    """Base class for every error raised by the bot."""


class ValidationError(TraderError):
    pass


class GatewayError(TraderError):
    pass


class NotFoundError(GatewayError):
    pass


class MalformedResponseError(GatewayError):
    pass


class PersistenceError(TraderError):
    pass
