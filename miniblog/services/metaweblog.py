"""
MetaWeblog remote-publishing API.

Exposes blog content to desktop editors (Open Live Writer, MarsEdit, ...)
through the blogger.* and metaWeblog.* XML-RPC methods. Every call carries
the owner's username and password, which are validated before anything else.
"""

import copy
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List
from urllib.parse import quote

from miniblog.config import BlogSettings

from .context import HttpContextAccessor
from .interfaces import (BlogService, InvalidCredentialsError, MetaWeblogProvider,
                         PostNotFoundError, UserServices)
from .models import Post, create_slug, utcnow
from .output_cache import OutputCache

log = logging.getLogger(__name__)


def _as_utc(value: Any) -> datetime:
    if not isinstance(value, datetime):
        return utcnow()
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _split_keywords(value: Any) -> List[str]:
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if str(v).strip()]
    return [k.strip() for k in str(value or "").split(",") if k.strip()]


class MetaWeblogService(MetaWeblogProvider):
    """Implements the XML-RPC methods on top of the blog and user services."""

    def __init__(self, blog: BlogService, users: UserServices, settings: BlogSettings,
                 context: HttpContextAccessor, cache: OutputCache):
        self.blog = blog
        self.users = users
        self.settings = settings
        self.context = context
        self.cache = cache

    def methods(self) -> Dict[str, Callable[..., Any]]:
        return {
            "blogger.getUsersBlogs": self.get_users_blogs,
            "blogger.getUserInfo": self.get_user_info,
            "blogger.deletePost": self.delete_post,
            "metaWeblog.newPost": self.new_post,
            "metaWeblog.editPost": self.edit_post,
            "metaWeblog.getPost": self.get_post,
            "metaWeblog.getRecentPosts": self.get_recent_posts,
            "metaWeblog.getCategories": self.get_categories,
            "metaWeblog.newMediaObject": self.new_media_object,
            "wp.newCategory": self.new_category,
        }

    def _validate_user(self, username: str, password: str) -> None:
        if not self.users.validate_user(username, password):
            raise InvalidCredentialsError("The username or password is invalid.")
        self.context.sign_in(username)

    def _require_post(self, post_id: str) -> Post:
        post = self.blog.get_post_by_id(str(post_id))
        if post is None:
            raise PostNotFoundError(f"Post '{post_id}' was not found.")
        return post

    def _url(self, path: str) -> str:
        return f"{self.context.base_url()}{path}"

    def _to_struct(self, post: Post) -> Dict[str, Any]:
        link = self._url(post.get_link())
        return {
            "postid": post.id,
            "title": post.title,
            "description": post.content,
            "dateCreated": post.pub_date.astimezone(timezone.utc).replace(tzinfo=None),
            "categories": list(post.categories),
            "mt_keywords": ",".join(post.tags),
            "mt_excerpt": post.excerpt,
            "wp_slug": post.slug,
            "link": link,
            "permalink": link,
        }

    def _apply_struct(self, post: Post, struct: Dict[str, Any], publish: bool) -> None:
        post.title = struct.get("title", post.title)
        post.content = struct.get("description", post.content)
        post.excerpt = struct.get("mt_excerpt", post.excerpt)
        post.is_published = bool(publish)
        if "categories" in struct:
            post.categories = _split_keywords(struct["categories"])
        if "mt_keywords" in struct:
            post.tags = _split_keywords(struct["mt_keywords"])
        if struct.get("wp_slug"):
            post.slug = create_slug(struct["wp_slug"])
        if struct.get("dateCreated"):
            post.pub_date = _as_utc(struct["dateCreated"])

    def get_users_blogs(self, appkey: str, username: str, password: str) -> List[Dict[str, Any]]:
        self._validate_user(username, password)
        return [{"blogid": "1", "blogName": self.settings.name, "url": self._url("/")}]

    def get_user_info(self, appkey: str, username: str, password: str) -> Dict[str, Any]:
        self._validate_user(username, password)
        return {
            "userid": username,
            "nickname": self.settings.owner,
            "firstname": self.settings.owner,
            "lastname": "",
            "email": "",
            "url": self._url("/"),
        }

    def new_post(self, blogid: str, username: str, password: str,
                 struct: Dict[str, Any], publish: bool) -> str:
        self._validate_user(username, password)
        post = Post(title=struct.get("title", ""))
        self._apply_struct(post, struct, publish)
        self.blog.save_post(post)
        self.cache.clear()
        log.info(f"MetaWeblog: created post '{post.slug}'.")
        return post.id

    def edit_post(self, postid: str, username: str, password: str,
                  struct: Dict[str, Any], publish: bool) -> bool:
        self._validate_user(username, password)
        post = copy.deepcopy(self._require_post(postid))
        self._apply_struct(post, struct, publish)
        self.blog.save_post(post)
        self.cache.clear()
        log.info(f"MetaWeblog: updated post '{post.slug}'.")
        return True

    def delete_post(self, appkey: str, postid: str, username: str, password: str,
                    publish: bool = False) -> bool:
        self._validate_user(username, password)
        post = self._require_post(postid)
        self.blog.delete_post(post)
        self.cache.clear()
        log.info(f"MetaWeblog: deleted post '{post.slug}'.")
        return True

    def get_post(self, postid: str, username: str, password: str) -> Dict[str, Any]:
        self._validate_user(username, password)
        return self._to_struct(self._require_post(postid))

    def get_recent_posts(self, blogid: str, username: str, password: str,
                         number_of_posts: int) -> List[Dict[str, Any]]:
        self._validate_user(username, password)
        return [self._to_struct(p) for p in self.blog.get_posts(int(number_of_posts))]

    def get_categories(self, blogid: str, username: str, password: str) -> List[Dict[str, Any]]:
        self._validate_user(username, password)
        return [
            {
                "categoryid": category,
                "title": category,
                "description": category,
                "htmlUrl": self._url(f"/blog/category/{quote(category)}"),
                "rssUrl": self._url("/feed/rss"),
            }
            for category in self.blog.get_categories()
        ]

    def new_media_object(self, blogid: str, username: str, password: str,
                         media: Dict[str, Any]) -> Dict[str, str]:
        self._validate_user(username, password)
        bits = media.get("bits", b"")
        data = bits.data if hasattr(bits, "data") else bytes(bits)
        url = self.blog.save_file(data, media.get("name", "file"))
        self.cache.clear()
        return {"url": self._url(url)}

    def new_category(self, blogid: str, username: str, password: str,
                     category: Dict[str, Any]) -> int:
        # Categories only exist through the posts that use them; nothing is stored.
        self._validate_user(username, password)
        log.info(f"MetaWeblog: accepted category '{category.get('name', '')}'.")
        return 1
