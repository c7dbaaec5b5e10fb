import anyio
import httpx
import pytest

from miniblog.web.startup import create_app


@pytest.mark.anyio
async def test_concurrent_requests_complete_independently(settings, seeded_posts) -> None:
    app = create_app(settings)
    paths = ["/", "/blog/first-steps", "/blog/missing", "/css/site.css", "/feed/rss"] * 8
    results = {}

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as client:
        async def fetch(index: int, path: str) -> None:
            results[index] = await client.get(path)

        async with anyio.create_task_group() as tg:
            for index, path in enumerate(paths):
                tg.start_soon(fetch, index, path)

    assert len(results) == len(paths)
    for index, path in enumerate(paths):
        response = results[index]
        assert response.status_code == (404 if path == "/blog/missing" else 200)
        assert response.headers["x-content-type-options"] == "nosniff"
    assert "Second thoughts" in results[0].text
