"""
Controllers of the blog. Each one is built by the service provider, so its
constructor declares the services it needs.
"""

from .account import AccountController
from .blog import BlogController
from .pwa import PwaController
from .robots import RobotsController
from .shared import SharedController

# Attribute routes are matched in this order.
CONTROLLERS = [AccountController, BlogController, SharedController, RobotsController, PwaController]

__all__ = [
    "AccountController", "BlogController", "CONTROLLERS", "PwaController",
    "RobotsController", "SharedController",
]
