"""
Services package for Miniblog.

Capability interfaces and the singleton implementations registered for them
at startup: blog storage, user lookup, the MetaWeblog handler, the HTTP
context accessor and the output cache store.
"""

from .context import HttpContextAccessor
from .file_blog import FileBlogService
from .interfaces import (BlogService, InvalidCredentialsError, MetaWeblogProvider,
                         PostNotFoundError, UserServices)
from .metaweblog import MetaWeblogService
from .models import Comment, Post, create_slug
from .output_cache import OutputCache
from .users import BlogUserServices, generate_credentials, hash_password

__all__ = [
    "BlogService", "BlogUserServices", "Comment", "FileBlogService", "HttpContextAccessor",
    "InvalidCredentialsError", "MetaWeblogProvider", "MetaWeblogService", "OutputCache",
    "Post", "PostNotFoundError", "UserServices", "create_slug", "generate_credentials",
    "hash_password",
]
