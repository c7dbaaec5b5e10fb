from datetime import timedelta
from pathlib import Path

from starlette.testclient import TestClient

from miniblog.services import BlogService, OutputCache, Post
from miniblog.services.file_blog import post_from_text
from miniblog.services.models import utcnow
from miniblog.web.startup import create_app

from tests.conftest import login, write_post


def test_front_page_lists_published_posts_newest_first(client: TestClient) -> None:
    text = client.get("/").text

    assert text.index("Second thoughts") < text.index("First steps")
    assert "Secret draft" not in text


def test_paging(settings, seeded_posts) -> None:
    write_post(settings, title="Oldest", pub_date=utcnow() - timedelta(days=30))
    client = TestClient(create_app(settings))

    first = client.get("/")
    second = client.get("/1")

    assert "Oldest" not in first.text and "/1" in first.text
    assert "Oldest" in second.text
    assert client.get("/2").status_code == 404


def test_post_page_renders_markdown(client: TestClient) -> None:
    response = client.get("/blog/first-steps")

    assert response.status_code == 200
    assert "<strong>world</strong>" in response.text


def test_drafts_are_only_visible_when_signed_in(client: TestClient) -> None:
    assert client.get("/blog/secret-draft").status_code == 404

    login(client)
    assert client.get("/blog/secret-draft").status_code == 200
    assert "Secret draft" in client.get("/").text


def test_category_and_tag_pages(client: TestClient) -> None:
    category = client.get("/blog/category/news")
    tag = client.get("/blog/tag/intro")

    assert "First steps" in category.text and "Second thoughts" not in category.text
    assert "First steps" in tag.text


def test_create_post_with_attachment(client: TestClient, settings) -> None:
    login(client)
    response = client.post(
        "/blog/new",
        data={"id": "", "title": "Hello World", "content": "Some **bold** text",
              "categories": "News, Python", "tags": "", "is_published": "on"},
        files={"attachment": ("report.pdf", b"%PDF-1.4", "application/pdf")},
        follow_redirects=False,
    )

    assert response.status_code == 303
    assert response.headers["location"] == "/blog/hello-world"

    stored = [post_from_text(p.read_text(encoding="utf-8")) for p in Path(settings.POSTS_DIR).glob("*.md")]
    created = next(p for p in stored if p.slug == "hello-world")
    assert created.categories == ["News", "Python"]
    assert "/Posts/files/report_" in created.content

    attachment_url = created.content.split("(")[-1].rstrip(")\n")
    assert client.get(attachment_url).content == b"%PDF-1.4"


def test_update_existing_post(client: TestClient, seeded_posts) -> None:
    post = seeded_posts[0]
    login(client)
    client.post(
        f"/blog/{post.slug}",
        data={"id": post.id, "title": "First steps", "slug": "first-steps", "content": "Rewritten"},
    )

    # Not published any more, but the owner still sees it.
    page = client.get("/blog/first-steps")
    assert "Rewritten" in page.text
    client.get("/logout/")
    assert client.get("/blog/first-steps").status_code == 404


def test_editing_requires_sign_in_for_posts(client: TestClient, seeded_posts) -> None:
    response = client.post(f"/blog/deletepost/{seeded_posts[0].id}", follow_redirects=False)
    assert response.status_code == 303
    assert "/login/" in response.headers["location"]


def test_delete_post(client: TestClient, settings, seeded_posts) -> None:
    post = seeded_posts[0]
    login(client)

    response = client.post(f"/blog/deletepost/{post.id}", follow_redirects=False)

    assert response.status_code == 303
    assert not (Path(settings.POSTS_DIR) / f"{post.id}.md").exists()
    assert client.get(post.get_link()).status_code == 404


def test_comments_can_be_added_and_deleted(client: TestClient, app, seeded_posts) -> None:
    post = seeded_posts[1]
    response = client.post(
        f"/blog/comment/{post.id}",
        data={"author": "Reader", "email": "reader@example.com", "content": "Nice *post*"},
        follow_redirects=False,
    )
    assert response.status_code == 303

    blog = app.state.services.get_required(BlogService)
    comment = blog.get_post_by_id(post.id).comments[0]
    assert comment.author == "Reader" and not comment.is_admin
    assert "<em>post</em>" in client.get(post.get_link()).text

    login(client)
    client.get(f"/blog/comment/{post.id}/{comment.id}")
    assert blog.get_post_by_id(post.id).comments == []


def test_incomplete_comment_is_rejected(client: TestClient, seeded_posts) -> None:
    response = client.post(f"/blog/comment/{seeded_posts[1].id}", data={"author": "x"})
    assert response.status_code == 400


def test_comments_close_after_configured_days(settings) -> None:
    old = write_post(settings, title="Ancient", pub_date=utcnow() - timedelta(days=40))
    client = TestClient(create_app(settings))

    response = client.post(
        f"/blog/comment/{old.id}",
        data={"author": "Reader", "email": "reader@example.com", "content": "Late"},
    )
    assert response.status_code == 404
    assert "Comments are closed" in client.get("/blog/ancient").text


def test_output_cache_serves_stored_page_until_cleared(client: TestClient, app) -> None:
    cache = app.state.services.get_required(OutputCache)
    blog = app.state.services.get_required(BlogService)

    assert "Fresh news" not in client.get("/").text
    assert len(cache) == 1

    # Saved behind the controllers' back, so the cache is not cleared.
    blog.save_post(Post(title="Fresh news"))
    assert "Fresh news" not in client.get("/").text

    cache.clear()
    assert "Fresh news" in client.get("/").text


def test_signed_in_requests_bypass_the_output_cache(client: TestClient, app) -> None:
    cache = app.state.services.get_required(OutputCache)
    login(client)

    client.get("/")
    assert len(cache) == 0


def test_error_responses_are_not_cached(client: TestClient, app) -> None:
    client.get("/blog/does-not-exist")
    assert len(app.state.services.get_required(OutputCache)) == 0


def test_failed_save_keeps_the_stored_post(client: TestClient, app, settings, seeded_posts) -> None:
    post = seeded_posts[0]
    # A directory where the temporary file goes makes the write fail.
    (Path(settings.POSTS_DIR) / f"{post.id}.tmp").mkdir()
    login(client)

    response = client.post(
        f"/blog/{post.slug}",
        data={"id": post.id, "title": "Never saved", "content": "Lost", "is_published": "on"},
    )

    assert response.status_code == 500
    anonymous = TestClient(app)
    assert anonymous.get("/blog/never-saved").status_code == 404
    assert "Hello" in anonymous.get("/blog/first-steps").text
    stored = post_from_text((Path(settings.POSTS_DIR) / f"{post.id}.md").read_text(encoding="utf-8"))
    assert stored.title == "First steps"


def test_comment_is_not_shown_before_it_is_saved(client: TestClient, app, settings, seeded_posts) -> None:
    post = seeded_posts[1]
    (Path(settings.POSTS_DIR) / f"{post.id}.tmp").mkdir()

    response = client.post(
        f"/blog/comment/{post.id}",
        data={"author": "Reader", "email": "reader@example.com", "content": "Unsaved"},
    )

    assert response.status_code == 500
    assert app.state.services.get_required(BlogService).get_post_by_id(post.id).comments == []
