"""Shared fixtures: isolated settings, a seeded posts folder and a test client."""

from datetime import timedelta
from pathlib import Path

import pytest
from starlette.testclient import TestClient

from miniblog.config import MergedSettings
from miniblog.services import Post, hash_password
from miniblog.services.file_blog import post_to_text
from miniblog.services.models import utcnow
from miniblog.web.startup import create_app

USERNAME = "demo"
PASSWORD = "correct horse"
SALT = "pepper"


def make_settings(tmp_path: Path, **overrides) -> MergedSettings:
    values = {
        "POSTS_DIR": tmp_path / "Posts",
        "USER_NAME": USERNAME,
        "USER_PASSWORD_HASH": hash_password(PASSWORD, SALT),
        "USER_SALT": SALT,
        "SECRET_KEY": "test-secret",
        "ENVIRONMENT": "Production",
        "FORCE_SSL": False,
    }
    values.update(overrides)
    # A missing app-settings file keeps the run independent of the working tree.
    return MergedSettings(appsettings_path=tmp_path / "appsettings.json", **values)


def write_post(settings: MergedSettings, **fields) -> Post:
    post = Post(**fields)
    folder = Path(settings.POSTS_DIR)
    folder.mkdir(parents=True, exist_ok=True)
    (folder / f"{post.id}.md").write_text(post_to_text(post), encoding="utf-8")
    return post


def login(client: TestClient, password: str = PASSWORD):
    return client.post(
        "/login/",
        data={"username": USERNAME, "password": password, "next": "/"},
        follow_redirects=False,
    )


@pytest.fixture
def settings(tmp_path: Path) -> MergedSettings:
    return make_settings(tmp_path)


@pytest.fixture
def seeded_posts(settings: MergedSettings):
    now = utcnow()
    return [
        write_post(settings, title="First steps", content="Hello **world**",
                   categories=["News"], tags=["Intro"], pub_date=now - timedelta(days=2)),
        write_post(settings, title="Second thoughts", content="More text",
                   categories=["Essays"], pub_date=now - timedelta(days=1)),
        write_post(settings, title="Secret draft", content="Not yet", is_published=False,
                   pub_date=now - timedelta(hours=1)),
    ]


@pytest.fixture
def app(settings: MergedSettings, seeded_posts):
    return create_app(settings)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)
