import logging
import os
import re
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from miniblog.config import MergedSettings

from .context import HttpContextAccessor
from .interfaces import BlogService
from .models import Comment, Post, utcnow

log = logging.getLogger(__name__)

FILES_DIR_NAME = "files"
_HEADER_RE = re.compile(r"^\s*~~~\s*\n(.*?)\n~~~\s*\n?(.*)", re.DOTALL)
_UNSAFE_FILE_CHARS = re.compile(r"[^\w.\-]+")


def _parse_date(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif value:
        parsed = datetime.fromisoformat(str(value))
    else:
        return utcnow()
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def parse_post_file(source_content: str) -> Tuple[str, Dict[str, Any]]:
    """
    Separates the '~~~'-fenced YAML header of a post file from its Markdown body.

    :param source_content: The full string content of the post file.
    :return tuple: A tuple containing (body_content, header_fields).
    """
    match = _HEADER_RE.match(source_content)
    if not match:
        return source_content, {}

    yaml_header, body_content = match.group(1), match.group(2)
    # Use safe_load to prevent arbitrary code execution from malicious YAML.
    parsed_yaml = yaml.safe_load(yaml_header)
    if not isinstance(parsed_yaml, dict):
        log.warning("Post header did not parse into a dictionary. Ignoring.")
        return body_content, {}
    return body_content, parsed_yaml


def post_from_text(source_content: str) -> Post:
    body, header = parse_post_file(source_content)
    comments = [
        Comment(
            id=str(c.get("id")),
            author=c.get("author", ""),
            email=c.get("email", ""),
            content=c.get("content", ""),
            pub_date=_parse_date(c.get("pub_date")),
            is_admin=bool(c.get("is_admin", False)),
        )
        for c in header.get("comments") or []
    ]
    return Post(
        id=str(header["id"]),
        title=header.get("title", ""),
        slug=header.get("slug", ""),
        excerpt=header.get("excerpt", ""),
        content=body,
        pub_date=_parse_date(header.get("pub_date")),
        last_modified=_parse_date(header.get("last_modified")),
        is_published=bool(header.get("is_published", True)),
        categories=[str(c) for c in header.get("categories") or []],
        tags=[str(t) for t in header.get("tags") or []],
        comments=comments,
    )


def post_to_text(post: Post) -> str:
    header = {
        "id": post.id,
        "title": post.title,
        "slug": post.slug,
        "excerpt": post.excerpt,
        "pub_date": post.pub_date.isoformat(),
        "last_modified": post.last_modified.isoformat(),
        "is_published": post.is_published,
        "categories": list(post.categories),
        "tags": list(post.tags),
        "comments": [
            {
                "id": c.id,
                "author": c.author,
                "email": c.email,
                "content": c.content,
                "pub_date": c.pub_date.isoformat(),
                "is_admin": c.is_admin,
            }
            for c in post.comments
        ],
    }
    dumped = yaml.safe_dump(header, allow_unicode=True, sort_keys=False)
    return f"~~~\n{dumped.rstrip()}\n~~~\n{post.content}"


class FileBlogService(BlogService):
    """
    Stores posts as Markdown files with a YAML header under `POSTS_DIR`.

    All posts are loaded into memory at construction and kept sorted newest
    first. Unpublished or future-dated posts are only returned to an
    authenticated user of the current request.
    """

    def __init__(self, settings: MergedSettings, context: HttpContextAccessor):
        self.folder = Path(settings.POSTS_DIR)
        self.files_folder = self.folder / FILES_DIR_NAME
        self.files_url = f"{settings.POSTS_REQUEST_PATH}/{FILES_DIR_NAME}"
        self.context = context
        self._lock = threading.RLock()
        self._cache: List[Post] = []

        self.folder.mkdir(parents=True, exist_ok=True)
        self._initialize()

    def _initialize(self) -> None:
        for file_path in self.folder.glob("*.md"):
            try:
                self._cache.append(post_from_text(file_path.read_text(encoding="utf-8")))
            except (KeyError, ValueError, yaml.YAMLError) as e:
                log.error(f"Skipping unreadable post file '{file_path.name}': {e}")
        self._sort()
        log.info(f"Loaded {len(self._cache)} posts from '{self.folder}'.")

    def _sort(self) -> None:
        self._cache.sort(key=lambda p: p.pub_date, reverse=True)

    def _is_admin(self) -> bool:
        return self.context.is_authenticated()

    def _visible(self) -> List[Post]:
        with self._lock:
            posts = list(self._cache)
        if self._is_admin():
            return posts
        now = utcnow()
        return [p for p in posts if p.is_visible(now)]

    def _file_path(self, post: Post) -> Path:
        return self.folder / f"{post.id}.md"

    def get_posts(self, count: Optional[int] = None, skip: int = 0) -> List[Post]:
        posts = self._visible()[skip:]
        return posts if count is None else posts[:count]

    def get_posts_by_category(self, category: str) -> List[Post]:
        wanted = category.lower()
        return [p for p in self._visible() if wanted in (c.lower() for c in p.categories)]

    def get_posts_by_tag(self, tag: str) -> List[Post]:
        wanted = tag.lower()
        return [p for p in self._visible() if wanted in (t.lower() for t in p.tags)]

    def get_post_by_slug(self, slug: str) -> Optional[Post]:
        wanted = slug.lower()
        return next((p for p in self._visible() if p.slug.lower() == wanted), None)

    def get_post_by_id(self, post_id: str) -> Optional[Post]:
        return next((p for p in self._visible() if p.id == post_id), None)

    def get_categories(self) -> List[str]:
        return sorted({c.lower() for p in self._visible() for c in p.categories})

    def get_tags(self) -> List[str]:
        return sorted({t.lower() for p in self._visible() for t in p.tags})

    def save_post(self, post: Post) -> None:
        """
        Writes `post` to its file, then makes it the cached post for its id.

        Pass an edited copy rather than a post returned by this service. When
        the write fails the cache keeps the post that is still on disk.

        :param post: The new or edited post.
        """
        post.last_modified = utcnow()
        target = self._file_path(post)
        temp = target.with_suffix(".tmp")
        with self._lock:
            temp.write_text(post_to_text(post), encoding="utf-8")
            os.replace(temp, target)
            self._cache = [p for p in self._cache if p.id != post.id]
            self._cache.append(post)
            self._sort()
        log.info(f"Saved post '{post.slug}' ({post.id}).")

    def delete_post(self, post: Post) -> None:
        with self._lock:
            self._file_path(post).unlink(missing_ok=True)
            self._cache = [p for p in self._cache if p.id != post.id]
        log.info(f"Deleted post '{post.slug}' ({post.id}).")

    def save_file(self, data: bytes, file_name: str, suffix: Optional[str] = None) -> str:
        suffix = suffix or str(time.time_ns())
        name = Path(_UNSAFE_FILE_CHARS.sub("-", Path(file_name).name).strip(".-") or "file")
        stored_name = f"{name.stem}_{suffix}{name.suffix.lower()}"

        self.files_folder.mkdir(parents=True, exist_ok=True)
        (self.files_folder / stored_name).write_bytes(data)
        log.info(f"Stored attachment '{stored_name}' ({len(data)} bytes).")
        return f"{self.files_url}/{stored_name}"
