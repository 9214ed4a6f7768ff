"""REST server for the workflow studio."""

from workflow_studio.server.app import create_app

__all__ = ["create_app"]
