"""Shared route dependencies."""

from fastapi import Request

from chatrelay.services.broker import RelayBroker


def get_broker(request: Request) -> RelayBroker:
    """The process-wide broker created by create_app()."""
    return request.app.state.broker
