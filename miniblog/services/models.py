import hashlib
import re
import unicodedata
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List
from urllib.parse import quote

from markdown2 import Markdown

MARKDOWN_EXTRAS = ["fenced-code-blocks", "tables", "header-ids", "strike"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Comment:
    author: str
    email: str
    content: str
    id: str = field(default_factory=new_id)
    pub_date: datetime = field(default_factory=utcnow)
    is_admin: bool = False

    def get_gravatar(self, size: int = 60) -> str:
        digest = hashlib.md5(self.email.strip().lower().encode("utf-8")).hexdigest()
        return f"https://www.gravatar.com/avatar/{digest}?s={size}&d=identicon"

    def render_content(self) -> str:
        """Comments are rendered without raw HTML."""
        return Markdown(safe_mode="escape").convert(self.content)


@dataclass
class Post:
    title: str
    content: str = ""
    id: str = field(default_factory=new_id)
    slug: str = ""
    excerpt: str = ""
    pub_date: datetime = field(default_factory=utcnow)
    last_modified: datetime = field(default_factory=utcnow)
    is_published: bool = True
    categories: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    comments: List[Comment] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.slug:
            self.slug = create_slug(self.title)

    def get_link(self) -> str:
        return f"/blog/{quote(self.slug)}"

    def are_comments_open(self, comments_close_after_days: int) -> bool:
        return self.pub_date + timedelta(days=comments_close_after_days) >= utcnow()

    def is_visible(self, now: datetime = None) -> bool:
        return self.is_published and self.pub_date <= (now or utcnow())

    def render_content(self) -> str:
        return Markdown(extras=MARKDOWN_EXTRAS).convert(self.content)


def create_slug(title: str) -> str:
    """Lowercase ASCII words joined by dashes, e.g. 'Hello, World!' -> 'hello-world'."""
    normalized = unicodedata.normalize("NFKD", title or "").encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9\s-]", "", normalized.lower())
    slug = re.sub(r"[\s-]+", "-", slug).strip("-")
    return slug or new_id()[:8]
