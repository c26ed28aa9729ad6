"""Falcon ASGI API for gitfeed.

Usage
-----
Import the application factory::

    from gitfeed.api import create_app

    app = create_app()

"""

from __future__ import annotations

from gitfeed.api.app import AppDependencies, create_app

__all__ = ["AppDependencies", "create_app"]
