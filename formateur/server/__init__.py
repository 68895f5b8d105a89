"""
Server - HTTP surface for the answering pipeline.
"""

from .app import create_app, run_server

__all__ = ["create_app", "run_server"]
