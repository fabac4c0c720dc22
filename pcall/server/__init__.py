"""Server side: dispatch engine and the FastAPI adapter."""

from pcall.server.app import create_app, run_server
from pcall.server.dispatch import dispatch, dispatch_batch, handle_body

__all__ = ["create_app", "run_server", "dispatch", "dispatch_batch", "handle_body"]
