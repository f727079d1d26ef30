"""fschat command line interface."""

from fschat.cli.app import app

__all__ = ["app"]
