"""
Web layer: middleware pipeline, controllers, views and the Hypercorn server.
"""
