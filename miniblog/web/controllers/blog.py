import copy
import logging
from html import escape
from typing import List, Optional

from starlette.authentication import requires
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

from miniblog.config import BlogSettings
from miniblog.services import BlogService, Comment, OutputCache, Post, create_slug
from miniblog.web import views
from miniblog.web.middleware import output_cache
from miniblog.web.routing import Controller, action

log = logging.getLogger(__name__)


def _split_list(value: Optional[str]) -> List[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


class BlogController(Controller):
    """Front page, post pages and the authoring actions behind sign-in."""

    def __init__(self, blog: BlogService, settings: BlogSettings, cache: OutputCache):
        self.blog = blog
        self.settings = settings
        self.cache = cache

    def _require_post(self, post_id: str) -> Post:
        post = self.blog.get_post_by_id(post_id)
        if post is None:
            raise HTTPException(status_code=404)
        return post

    def _editable_post(self, post_id: str) -> Post:
        # Readers keep the cached post until the edited copy has been saved.
        return copy.deepcopy(self._require_post(post_id))

    @action("/", "/{page:int}", name="blog.index")
    @output_cache("default")
    async def index(self, request: Request, page: int = 0) -> Response:
        per_page = self.settings.posts_per_page
        posts = self.blog.get_posts(per_page, per_page * page)
        if page > 0 and not posts:
            raise HTTPException(status_code=404)

        newer_url = None if page == 0 else ("/" if page == 1 else f"/{page - 1}")
        older_url = f"/{page + 1}" if self.blog.get_posts(1, per_page * (page + 1)) else None
        body = views.post_list(posts, newer_url=newer_url, older_url=older_url)
        return views.render(request, self.settings, "", body)

    @action("/blog/category/{category}")
    @output_cache("default")
    async def category(self, request: Request, category: str) -> Response:
        posts = self.blog.get_posts_by_category(category)
        body = f"<h1>Category: {escape(category)}</h1>" + views.post_list(posts, newer_url=None, older_url=None)
        return views.render(request, self.settings, category, body)

    @action("/blog/tag/{tag}")
    @output_cache("default")
    async def tag(self, request: Request, tag: str) -> Response:
        posts = self.blog.get_posts_by_tag(tag)
        body = f"<h1>Tag: {escape(tag)}</h1>" + views.post_list(posts, newer_url=None, older_url=None)
        return views.render(request, self.settings, tag, body)

    # Registered before `post` so '/blog/edit' is not taken for a slug.
    @action("/blog/edit", "/blog/edit/{id}")
    @requires("authenticated", redirect="login")
    async def edit(self, request: Request, id: Optional[str] = None) -> Response:
        post = self._require_post(id) if id else None
        title = f"Edit: {post.title}" if post else "New post"
        return views.render(request, self.settings, title, views.edit_form(post))

    @action("/blog/{slug}")
    @output_cache("default")
    async def post(self, request: Request, slug: str) -> Response:
        post = self.blog.get_post_by_slug(slug)
        if post is None:
            raise HTTPException(status_code=404)

        body = views.post_detail(
            post,
            comments_open=post.are_comments_open(self.settings.comments_close_after_days),
            display_comments=self.settings.display_comments,
            is_admin=views.is_admin(request),
        )
        return views.render(request, self.settings, post.title, body, description=post.excerpt)

    @action("/blog/{slug}", methods=["POST"])
    @requires("authenticated", redirect="login")
    async def update_post(self, request: Request, slug: str) -> Response:
        form = await request.form()
        post_id = form.get("id") or ""
        title = (form.get("title") or "").strip()
        if not title:
            raise HTTPException(status_code=400)

        post = self._editable_post(post_id) if post_id else Post(title=title)
        post.title = title
        post.slug = create_slug(form.get("slug") or title)
        post.excerpt = (form.get("excerpt") or "").strip()
        post.content = form.get("content") or ""
        post.categories = _split_list(form.get("categories"))
        post.tags = _split_list(form.get("tags"))
        post.is_published = form.get("is_published") is not None

        attachment = form.get("attachment")
        if isinstance(attachment, UploadFile) and attachment.filename:
            data = await attachment.read()
            url = await run_in_threadpool(self.blog.save_file, data, attachment.filename)
            post.content = f"{post.content.rstrip()}\n\n[{attachment.filename}]({url})\n"

        await run_in_threadpool(self.blog.save_post, post)
        self.cache.clear()
        log.info(f"Post '{post.slug}' saved by {request.user.display_name}.")
        return RedirectResponse(post.get_link(), status_code=303)

    @action("/blog/deletepost/{id}", methods=["POST"])
    @requires("authenticated", redirect="login")
    async def delete_post(self, request: Request, id: str) -> Response:
        post = self._require_post(id)
        await run_in_threadpool(self.blog.delete_post, post)
        self.cache.clear()
        return RedirectResponse("/", status_code=303)

    @action("/blog/comment/{postid}", methods=["POST"])
    async def add_comment(self, request: Request, postid: str) -> Response:
        post = self._editable_post(postid)
        if not post.are_comments_open(self.settings.comments_close_after_days):
            raise HTTPException(status_code=404)

        form = await request.form()
        author = (form.get("author") or "").strip()
        email = (form.get("email") or "").strip()
        content = (form.get("content") or "").strip()
        if not (author and email and content):
            raise HTTPException(status_code=400)

        comment = Comment(author=author, email=email, content=content, is_admin=views.is_admin(request))
        post.comments.append(comment)
        await run_in_threadpool(self.blog.save_post, post)
        self.cache.clear()
        return RedirectResponse(f"{post.get_link()}#{comment.id}", status_code=303)

    @action("/blog/comment/{postid}/{commentid}")
    @requires("authenticated", redirect="login")
    async def delete_comment(self, request: Request, postid: str, commentid: str) -> Response:
        post = self._editable_post(postid)
        comment = next((c for c in post.comments if c.id == commentid), None)
        if comment is None:
            raise HTTPException(status_code=404)

        post.comments.remove(comment)
        await run_in_threadpool(self.blog.save_post, post)
        self.cache.clear()
        return RedirectResponse(f"{post.get_link()}#comments", status_code=303)
