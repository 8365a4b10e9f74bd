"""
Server Layer.

This package exposes the extraction pipeline over HTTP and keeps the node
registered with the coordinator.
"""

from .app import create_app, run_server
from .registration import CoordinatorClient

__all__ = ["CoordinatorClient", "create_app", "run_server"]
