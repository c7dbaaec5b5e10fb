"""
HTML views. Pages are assembled from f-strings; every interpolated value
coming from content or the request is escaped.
"""

from html import escape
from typing import List, Optional
from urllib.parse import quote

from starlette.requests import HTTPConnection
from starlette.responses import HTMLResponse

from miniblog.config import BlogSettings
from miniblog.services.models import Post

STATUS_MESSAGES = {
    400: "The request could not be understood.",
    401: "You need to sign in to see this page.",
    403: "You are not allowed to see this page.",
    404: "The page you were looking for does not exist.",
    405: "That method is not allowed here.",
    500: "Something went wrong on our side.",
}


def is_admin(connection: HTTPConnection) -> bool:
    return "user" in connection.scope and connection.user.is_authenticated


def render(request: HTTPConnection, settings: BlogSettings, title: str, body: str,
           status_code: int = 200, description: str = "") -> HTMLResponse:
    """Wraps `body` in the site layout."""
    page = layout(settings, title, body, is_admin=is_admin(request), description=description)
    return HTMLResponse(page, status_code=status_code)


def layout(settings: BlogSettings, title: str, body: str, *, is_admin: bool = False,
           description: str = "") -> str:
    page_title = escape(f"{title} | {settings.name}" if title else settings.name)
    admin_links = (
        '<a href="/blog/edit">New post</a> <a href="/logout/">Sign out</a>'
        if is_admin else '<a href="/login/" rel="nofollow">Sign in</a>'
    )
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>{page_title}</title>
    <meta name="description" content="{escape(description or settings.description)}" />
    <link rel="stylesheet" href="/css/site.css" />
    <link rel="manifest" href="/manifest.webmanifest" />
    <link rel="alternate" type="application/rss+xml" href="/feed/rss" />
    <link rel="EditURI" type="application/rsd+xml" title="RSD" href="/rsd.xml" />
</head>
<body>
    <!-- site header -->
    <header class="siteheader">
        <p class="site-title"><a href="/">{escape(settings.name)}</a></p>
        <p>{escape(settings.description)}</p>
    </header>
    <main>
        {body}
    </main>
    <footer class="sitefooter">
        <p>Powered by Miniblog &middot; {admin_links}</p>
    </footer>
    <script src="/js/site.js" async defer></script>
</body>
</html>"""


def _post_meta(post: Post) -> str:
    categories = " ".join(
        f'<a href="/blog/category/{quote(c.lower())}">{escape(c)}</a>' for c in post.categories
    )
    return (
        f'<time datetime="{post.pub_date.isoformat()}">{post.pub_date:%B %d, %Y}</time>'
        + (f' <span class="categories">{categories}</span>' if categories else "")
    )


def post_list(posts: List[Post], *, newer_url: Optional[str], older_url: Optional[str]) -> str:
    if not posts:
        return '<p class="empty">No posts yet.</p>'
    items = []
    for post in posts:
        summary = escape(post.excerpt) if post.excerpt else post.render_content()
        draft = "" if post.is_published else ' <em class="draft">(draft)</em>'
        items.append(f"""<article class="post">
    <header><h2><a href="{post.get_link()}">{escape(post.title)}</a>{draft}</h2>{_post_meta(post)}</header>
    <div>{summary}</div>
</article>""")
    pager = ""
    if newer_url:
        pager += f'<a href="{newer_url}" class="newer">&larr; Newer</a>'
    if older_url:
        pager += f'<a href="{older_url}" class="older">Older &rarr;</a>'
    return "\n".join(items) + (f'\n<nav class="pagination">{pager}</nav>' if pager else "")


def post_detail(post: Post, *, comments_open: bool, display_comments: bool, is_admin: bool) -> str:
    admin = ""
    if is_admin:
        admin = f"""<p class="admin">
    <a href="/blog/edit/{post.id}">Edit</a>
    <form method="post" action="/blog/deletepost/{post.id}" class="inline"><button type="submit">Delete</button></form>
</p>"""
    tags = " ".join(f'<a href="/blog/tag/{quote(t.lower())}">#{escape(t)}</a>' for t in post.tags)
    comments_html = ""
    if display_comments:
        rendered = []
        for comment in post.comments:
            delete = (f' <a href="/blog/comment/{post.id}/{comment.id}" class="delete">Delete</a>'
                      if is_admin else "")
            rendered.append(f"""<div class="comment{' admin' if comment.is_admin else ''}" id="{comment.id}">
    <img src="{comment.get_gravatar()}" alt="" width="60" height="60" />
    <p class="author">{escape(comment.author)} &middot; <time datetime="{comment.pub_date.isoformat()}">{comment.pub_date:%B %d, %Y}</time>{delete}</p>
    <div>{comment.render_content()}</div>
</div>""")
        form = ""
        if comments_open:
            form = f"""<form method="post" action="/blog/comment/{post.id}" class="comment-form">
    <label>Comment <textarea name="content" required></textarea></label>
    <label>Name <input type="text" name="author" required /></label>
    <label>Email <input type="email" name="email" required /></label>
    <button type="submit">Post comment</button>
</form>"""
        else:
            form = "<p>Comments are closed.</p>"
        comments_html = f'<section id="comments"><h2>Comments</h2>{"".join(rendered)}{form}</section>'

    return f"""<article class="post">
    <header><h1>{escape(post.title)}</h1>{_post_meta(post)}</header>
    {admin}
    <div class="content">{post.render_content()}</div>
    <footer>{tags}</footer>
</article>
{comments_html}"""


def edit_form(post: Optional[Post]) -> str:
    post_id = post.id if post else ""
    title = escape(post.title) if post else ""
    slug = escape(post.slug) if post else ""
    excerpt = escape(post.excerpt) if post else ""
    content = escape(post.content) if post else ""
    categories = escape(", ".join(post.categories)) if post else ""
    tags = escape(", ".join(post.tags)) if post else ""
    published = "checked" if (post is None or post.is_published) else ""
    action = f"/blog/{quote(post.slug)}" if post else "/blog/new"
    return f"""<form method="post" action="{action}" enctype="multipart/form-data" class="edit-post">
    <input type="hidden" name="id" value="{post_id}" />
    <label>Title <input type="text" name="title" value="{title}" required /></label>
    <label>Slug <input type="text" name="slug" value="{slug}" /></label>
    <label>Excerpt <textarea name="excerpt">{excerpt}</textarea></label>
    <label>Content <textarea name="content" rows="20">{content}</textarea></label>
    <label>Categories <input type="text" name="categories" value="{categories}" /></label>
    <label>Tags <input type="text" name="tags" value="{tags}" /></label>
    <label>Attachment <input type="file" name="attachment" /></label>
    <label><input type="checkbox" name="is_published" {published} /> Published</label>
    <button type="submit">Save</button>
</form>"""


def login_form(next_url: str, error: Optional[str] = None) -> str:
    message = f'<p class="error">{escape(error)}</p>' if error else ""
    return f"""<h1>Sign in</h1>
{message}
<form method="post" action="/login/" class="login">
    <input type="hidden" name="next" value="{escape(next_url)}" />
    <label>Username <input type="text" name="username" required autofocus /></label>
    <label>Password <input type="password" name="password" required /></label>
    <label><input type="checkbox" name="remember_me" /> Remember me</label>
    <button type="submit">Sign in</button>
</form>"""


def error_page(status_code: Optional[int] = None) -> str:
    message = STATUS_MESSAGES.get(status_code, "An error occurred while processing your request.")
    heading = f"Error {status_code}" if status_code else "Error"
    return f"""<h1>{heading}</h1>
<p class="error-message">{escape(message)}</p>
<p><a href="/">Back to the front page</a></p>"""


def offline_page() -> str:
    return """<h1>You are offline</h1>
<p>This page is not available without a network connection. Try again once you are back online.</p>"""
