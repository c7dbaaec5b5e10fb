import pytest
from starlette.testclient import TestClient

from miniblog.services import BlogService, FileBlogService
from miniblog.web.middleware.errors import REEXECUTE_SCOPE_KEY, ROUTING_SCOPE_KEYS, reexecute_scope
from miniblog.web.startup import create_app

from tests.conftest import login, make_settings


class BrokenBlogService(FileBlogService):
    def get_posts(self, count=None, skip=0):
        raise RuntimeError("storage offline")


def use_broken_blog(services):
    services.add_singleton(BlogService, BrokenBlogService)


@pytest.mark.parametrize("path", ["/", "/blog/first-steps", "/does/not/exist", "/css/site.css",
                                  "/js/site.js", "/Posts/", "/robots.txt", "/login/"])
def test_every_response_is_nosniff(client: TestClient, path: str) -> None:
    response = client.get(path)
    assert response.headers["x-content-type-options"] == "nosniff"


def test_no_server_header_from_the_application(client: TestClient) -> None:
    assert "server" not in client.get("/").headers


def test_missing_page_renders_error_view_with_original_status(client: TestClient) -> None:
    response = client.get("/blog/no-such-post")

    assert response.status_code == 404
    assert response.headers["content-type"].startswith("text/html")
    assert "Error 404" in response.text
    assert "does not exist" in response.text


def test_unknown_conventional_route_is_404(client: TestClient) -> None:
    response = client.get("/nope/really/deep")
    assert response.status_code == 404
    assert "Error 404" in response.text


def test_reexecuted_error_keeps_allow_header(client: TestClient) -> None:
    response = client.get("/metaweblog")

    assert response.status_code == 405
    assert response.headers["allow"] == "POST"
    assert "Error 405" in response.text


def test_unhandled_exception_renders_error_page_in_production(tmp_path) -> None:
    app = create_app(make_settings(tmp_path), configure_services=use_broken_blog)
    response = TestClient(app).get("/")

    assert response.status_code == 500
    assert "Error 500" in response.text
    assert response.headers["x-content-type-options"] == "nosniff"
    assert response.headers["strict-transport-security"] == "max-age=2592000"


def test_hsts_is_sent_outside_development(client: TestClient) -> None:
    assert client.get("/").headers["strict-transport-security"] == "max-age=2592000"


def test_development_shows_debug_page_and_no_hsts(tmp_path) -> None:
    settings = make_settings(tmp_path, ENVIRONMENT="Development")
    healthy = TestClient(create_app(settings))
    assert "strict-transport-security" not in healthy.get("/").headers

    broken = TestClient(create_app(settings, configure_services=use_broken_blog),
                        raise_server_exceptions=False)
    response = broken.get("/", headers={"accept": "text/html"})
    assert response.status_code == 500
    assert "RuntimeError" in response.text


def test_force_ssl_redirects_to_https(tmp_path) -> None:
    client = TestClient(create_app(make_settings(tmp_path, FORCE_SSL=True)))
    response = client.get("/", follow_redirects=False)

    assert response.status_code == 307
    assert response.headers["location"].startswith("https://testserver/")


def test_no_redirect_without_force_ssl(client: TestClient) -> None:
    response = client.get("/", follow_redirects=False)
    assert response.status_code == 200


def test_html_responses_are_minified(client: TestClient) -> None:
    response = client.get("/")

    assert response.status_code == 200
    assert "<!-- site header -->" not in response.text
    assert "<main>" in response.text
    assert "\n    <main>" not in response.text


def test_error_route_is_reachable_through_the_conventional_route(client: TestClient) -> None:
    response = client.get("/shared/error")

    assert response.status_code == 200
    assert "<h1>Error</h1>" in response.text
    assert "Error 500" not in response.text


@pytest.mark.parametrize("path", ["/blog/no-such-post", "/blog/comment/missing/c1", "/Account/Missing/42"])
def test_error_view_after_routes_with_path_params(client: TestClient, path: str) -> None:
    login(client)
    response = client.get(path)

    assert response.status_code == 404
    assert response.headers["content-type"].startswith("text/html")
    assert "Error 404" in response.text


def test_reexecuted_scope_drops_routing_state() -> None:
    scope = {"type": "http", "method": "POST", "path": "/blog/x", "query_string": b"a=1",
             "path_params": {"slug": "x"}, "endpoint": object(), "route": object(), "router": object()}

    child = reexecute_scope(scope, "/Shared/Error", 404)

    assert not set(ROUTING_SCOPE_KEYS) & set(child)
    assert (child["method"], child["path"], child["query_string"]) == ("GET", "/Shared/Error", b"")
    assert child[REEXECUTE_SCOPE_KEY] == {"status_code": 404, "original_path": "/blog/x"}
    assert scope["path_params"] == {"slug": "x"}


@pytest.mark.parametrize("path", ["/blog/a%00b", "/" + "a" * 300, "/Posts/" + "b" * 300])
def test_unrepresentable_file_names_are_not_server_errors(client: TestClient, path: str) -> None:
    response = client.get(path)

    assert response.status_code == 404
    assert "Error 404" in response.text


def test_output_cache_does_not_widen_case_sensitive_routes(client: TestClient) -> None:
    assert client.get("/Blog/first-steps").status_code == 404
    assert client.get("/blog/first-steps").status_code == 200
    assert client.get("/Blog/first-steps").status_code == 404
