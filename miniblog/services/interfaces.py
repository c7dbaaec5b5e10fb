"""
Capability interfaces the application resolves its services by.
"""

import abc
from typing import Any, Dict, List, Optional

from .models import Post


class PostNotFoundError(LookupError):
    """Raised when a post id or slug does not match any stored post."""


class InvalidCredentialsError(PermissionError):
    """Raised when a username/password pair is rejected."""


class UserServices(abc.ABC):
    """User lookup."""

    @abc.abstractmethod
    def validate_user(self, username: str, password: str) -> bool:
        ...


class BlogService(abc.ABC):
    """Blog content storage."""

    @abc.abstractmethod
    def get_posts(self, count: Optional[int] = None, skip: int = 0) -> List[Post]:
        ...

    @abc.abstractmethod
    def get_posts_by_category(self, category: str) -> List[Post]:
        ...

    @abc.abstractmethod
    def get_posts_by_tag(self, tag: str) -> List[Post]:
        ...

    @abc.abstractmethod
    def get_post_by_slug(self, slug: str) -> Optional[Post]:
        ...

    @abc.abstractmethod
    def get_post_by_id(self, post_id: str) -> Optional[Post]:
        ...

    @abc.abstractmethod
    def get_categories(self) -> List[str]:
        ...

    @abc.abstractmethod
    def get_tags(self) -> List[str]:
        ...

    @abc.abstractmethod
    def save_post(self, post: Post) -> None:
        ...

    @abc.abstractmethod
    def delete_post(self, post: Post) -> None:
        ...

    @abc.abstractmethod
    def save_file(self, data: bytes, file_name: str, suffix: Optional[str] = None) -> str:
        """Stores an attachment and returns the URL it is served from."""


class MetaWeblogProvider(abc.ABC):
    """Remote-publishing (MetaWeblog XML-RPC) handler."""

    @abc.abstractmethod
    def methods(self) -> Dict[str, Any]:
        """XML-RPC method names mapped to callables."""
