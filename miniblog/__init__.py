"""
Miniblog: a small file-backed blog served by Starlette and Hypercorn.
"""

__version__ = "1.0.0"
