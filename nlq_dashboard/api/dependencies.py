from fastapi import Request

from ..services import Services


def get_services(request: Request) -> Services:
    """Get the services built at application start-up."""
    return request.app.state.services
