import copy
from datetime import timedelta
from pathlib import Path

import pytest
from starlette.requests import HTTPConnection

from miniblog.services import (BlogUserServices, Comment, FileBlogService, HttpContextAccessor, OutputCache,
                               Post, create_slug, generate_credentials, hash_password)
from miniblog.services.file_blog import parse_post_file, post_from_text, post_to_text
from miniblog.services.models import utcnow

from tests.conftest import PASSWORD, USERNAME, make_settings, write_post


def http_connection() -> HTTPConnection:
    return HTTPConnection({"type": "http", "method": "GET", "path": "/", "headers": [],
                           "scheme": "http", "server": ("blog.example", 80), "query_string": b""})


@pytest.mark.parametrize("title, slug", [
    ("Hello, World!", "hello-world"),
    ("  Crème brûlée   recipes ", "creme-brulee-recipes"),
    ("multiple---dashes", "multiple-dashes"),
])
def test_create_slug(title: str, slug: str) -> None:
    assert create_slug(title) == slug


def test_create_slug_never_empty() -> None:
    assert create_slug("!!!")


def test_post_file_round_trip_keeps_comments() -> None:
    post = Post(title="Round trip", content="# Heading\n\nBody", categories=["A"], tags=["b"])
    post.comments.append(Comment(author="Ann", email="ann@example.com", content="Hi", is_admin=True))

    restored = post_from_text(post_to_text(post))

    assert (restored.id, restored.slug, restored.content) == (post.id, "round-trip", post.content)
    assert restored.pub_date == post.pub_date
    assert restored.comments[0].author == "Ann" and restored.comments[0].is_admin


def test_post_file_without_header() -> None:
    body, header = parse_post_file("just markdown")
    assert (body, header) == ("just markdown", {})


def test_visibility_depends_on_authentication(tmp_path: Path) -> None:
    settings = make_settings(tmp_path)
    write_post(settings, title="Public")
    write_post(settings, title="Future", pub_date=utcnow() + timedelta(days=1))
    write_post(settings, title="Hidden", is_published=False)
    context = HttpContextAccessor()
    blog = FileBlogService(settings, context)

    assert [p.title for p in blog.get_posts()] == ["Public"]

    token = context.bind(http_connection())
    try:
        context.sign_in(USERNAME)
        assert [p.title for p in blog.get_posts()] == ["Future", "Hidden", "Public"]
    finally:
        context.reset(token)
    assert context.request is None


def test_unreadable_post_files_are_skipped(tmp_path: Path) -> None:
    settings = make_settings(tmp_path)
    write_post(settings, title="Good")
    (Path(settings.POSTS_DIR) / "broken.md").write_text("~~~\ntitle: no id\n~~~\nbody", encoding="utf-8")

    blog = FileBlogService(settings, HttpContextAccessor())

    assert [p.title for p in blog.get_posts()] == ["Good"]


def test_save_and_delete_persist_to_disk(tmp_path: Path) -> None:
    settings = make_settings(tmp_path)
    blog = FileBlogService(settings, HttpContextAccessor())
    post = Post(title="Saved", tags=["X"])

    blog.save_post(post)
    reloaded = FileBlogService(settings, HttpContextAccessor())
    assert reloaded.get_post_by_slug("SAVED").id == post.id
    assert reloaded.get_posts_by_tag("x")[0].id == post.id
    assert reloaded.get_tags() == ["x"]

    blog.delete_post(post)
    assert blog.get_post_by_id(post.id) is None
    assert not list(Path(settings.POSTS_DIR).glob("*.md"))


def test_save_file_sanitizes_name(tmp_path: Path) -> None:
    settings = make_settings(tmp_path)
    blog = FileBlogService(settings, HttpContextAccessor())

    url = blog.save_file(b"data", "../../My Photo.PNG", suffix="1")

    assert url == "/Posts/files/My-Photo_1.png"
    assert (Path(settings.POSTS_DIR) / "files" / "My-Photo_1.png").read_bytes() == b"data"


def test_comments_open_window() -> None:
    post = Post(title="x", pub_date=utcnow() - timedelta(days=5))
    assert post.are_comments_open(10)
    assert not post.are_comments_open(3)


def test_comment_markdown_escapes_html() -> None:
    comment = Comment(author="x", email="x@example.com", content="<script>alert(1)</script>")
    assert "<script>" not in comment.render_content()


def test_gravatar_uses_normalized_email() -> None:
    first = Comment(author="a", email=" Ann@Example.com ", content="").get_gravatar()
    second = Comment(author="a", email="ann@example.com", content="").get_gravatar()
    assert first == second


def test_validate_user(tmp_path: Path) -> None:
    users = BlogUserServices(make_settings(tmp_path))

    assert users.validate_user(USERNAME, PASSWORD)
    assert not users.validate_user(USERNAME, "wrong")
    assert not users.validate_user("someone", PASSWORD)


def test_validate_user_without_configured_hash(tmp_path: Path) -> None:
    users = BlogUserServices(make_settings(tmp_path, USER_PASSWORD_HASH=""))
    assert not users.validate_user(USERNAME, "")


def test_generated_credentials_verify() -> None:
    password_hash, salt = generate_credentials("pw")
    assert hash_password("pw", salt) == password_hash
    assert hash_password("pw", salt + "x") != password_hash


def test_output_cache_expiry(monkeypatch: pytest.MonkeyPatch) -> None:
    now = [1000.0]
    monkeypatch.setattr("miniblog.services.output_cache.time.monotonic", lambda: now[0])
    cache = OutputCache({"default": 60})

    cache.set("/?", "default", 200, [], b"body")
    assert cache.get("/?").body == b"body"

    now[0] += 61
    assert cache.get("/?") is None
    assert len(cache) == 0


def test_output_cache_rejects_unknown_profile() -> None:
    with pytest.raises(KeyError):
        OutputCache().set("/", "missing", 200, [], b"")


def test_context_base_url() -> None:
    context = HttpContextAccessor()
    assert context.base_url() == ""

    token = context.bind(http_connection())
    try:
        assert context.base_url() == "http://blog.example"
        assert not context.is_authenticated()
    finally:
        context.reset(token)


def test_save_post_swaps_the_cached_post_only_after_writing(tmp_path: Path) -> None:
    settings = make_settings(tmp_path)
    stored = write_post(settings, title="Original")
    blog = FileBlogService(settings, HttpContextAccessor())
    cached = blog.get_post_by_id(stored.id)

    edited = copy.deepcopy(cached)
    edited.title = "Changed"
    (Path(settings.POSTS_DIR) / f"{stored.id}.tmp").mkdir()
    with pytest.raises(OSError):
        blog.save_post(edited)
    assert blog.get_post_by_id(stored.id) is cached
    assert cached.title == "Original"

    (Path(settings.POSTS_DIR) / f"{stored.id}.tmp").rmdir()
    blog.save_post(edited)
    assert blog.get_post_by_id(stored.id) is edited
    assert len(blog.get_posts()) == 1
