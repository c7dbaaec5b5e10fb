import json
import xml.etree.ElementTree as ET

import pytest
from starlette.testclient import TestClient


def test_robots_txt_points_at_sitemap(client: TestClient) -> None:
    response = client.get("/robots.txt")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "Sitemap: http://testserver/sitemap.xml" in response.text


def test_sitemap_lists_published_posts(client: TestClient) -> None:
    root = ET.fromstring(client.get("/sitemap.xml").content)
    ns = {"s": "http://www.sitemaps.org/schemas/sitemap/0.9"}
    locations = [loc.text for loc in root.findall("s:url/s:loc", ns)]

    assert "http://testserver/blog/first-steps" in locations
    assert "http://testserver/blog/secret-draft" not in locations


def test_rsd_advertises_metaweblog_endpoint(client: TestClient) -> None:
    root = ET.fromstring(client.get("/rsd.xml").content)
    api = root.find(".//{http://archipelago.phrasewise.com/rsd}api")

    assert api.get("name") == "MetaWeblog"
    assert api.get("apiLink") == "http://testserver/metaweblog"


def test_rss_feed(client: TestClient) -> None:
    response = client.get("/feed/rss")
    root = ET.fromstring(response.content)

    assert response.headers["content-type"].startswith("application/rss+xml")
    titles = [item.findtext("title") for item in root.iter("item")]
    assert titles == ["Second thoughts", "First steps"]


def test_atom_feed(client: TestClient) -> None:
    root = ET.fromstring(client.get("/feed/atom").content)
    entries = root.findall("{http://www.w3.org/2005/Atom}entry")
    assert len(entries) == 2


@pytest.mark.parametrize("kind", ["json", "rdf"])
def test_unknown_feed_type_is_404(client: TestClient, kind: str) -> None:
    assert client.get(f"/feed/{kind}").status_code == 404


def test_web_manifest(client: TestClient) -> None:
    response = client.get("/manifest.webmanifest")
    manifest = json.loads(response.content)

    assert response.headers["content-type"].startswith("application/manifest+json")
    assert manifest["name"] == "Miniblog"
    assert manifest["start_url"] == "/"


def test_service_worker_falls_back_to_offline_page(client: TestClient) -> None:
    script = client.get("/serviceworker")
    offline = client.get("/shared/offline/")

    assert script.headers["content-type"].startswith("text/javascript")
    assert '"/shared/offline/"' in script.text
    assert offline.status_code == 200
    assert "You are offline" in offline.text
