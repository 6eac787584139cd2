"""recordvault HTTP Server.

FastAPI-based HTTP interface placed behind the API gateway.
"""

from .app import create_app, run_server

__all__ = ["create_app", "run_server"]
