"""
Machine-readable endpoints: robots.txt, the sitemap, the RSD document that
points publishing clients at the MetaWeblog endpoint, and RSS/Atom feeds.
"""

import xml.etree.ElementTree as ET
from email.utils import format_datetime

from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

from miniblog.config import BlogSettings, MergedSettings
from miniblog.services import BlogService
from miniblog.web.middleware import output_cache
from miniblog.web.routing import Controller, action

FEED_ITEMS = 10
ATOM_NS = "http://www.w3.org/2005/Atom"


def _xml_response(root: ET.Element, media_type: str) -> Response:
    payload = ET.tostring(root, encoding="utf-8", xml_declaration=True)
    return Response(payload, media_type=media_type)


class RobotsController(Controller):

    def __init__(self, blog: BlogService, settings: BlogSettings, app_settings: MergedSettings):
        self.blog = blog
        self.settings = settings
        self.metaweblog_path = app_settings.METAWEBLOG_PATH

    @staticmethod
    def _host(request: Request) -> str:
        return str(request.base_url).rstrip("/")

    @action("/robots.txt")
    @output_cache("default")
    async def robots_txt(self, request: Request) -> Response:
        host = self._host(request)
        lines = [
            "User-agent: *",
            "Disallow: /blog/edit",
            "Disallow: /login/",
            f"Sitemap: {host}/sitemap.xml",
        ]
        return PlainTextResponse("\n".join(lines) + "\n")

    @action("/sitemap.xml")
    @output_cache("default")
    async def sitemap_xml(self, request: Request) -> Response:
        host = self._host(request)
        urlset = ET.Element("urlset", xmlns="http://www.sitemaps.org/schemas/sitemap/0.9")
        for post in self.blog.get_posts():
            url = ET.SubElement(urlset, "url")
            ET.SubElement(url, "loc").text = host + post.get_link()
            ET.SubElement(url, "lastmod").text = post.last_modified.strftime("%Y-%m-%d")
        return _xml_response(urlset, "application/xml")

    @action("/rsd.xml")
    async def rsd_xml(self, request: Request) -> Response:
        host = self._host(request)
        rsd = ET.Element("rsd", version="1.0", xmlns="http://archipelago.phrasewise.com/rsd")
        service = ET.SubElement(rsd, "service")
        ET.SubElement(service, "engineName").text = "Miniblog"
        ET.SubElement(service, "engineLink").text = host
        ET.SubElement(service, "homePageLink").text = host
        apis = ET.SubElement(service, "apis")
        ET.SubElement(apis, "api", name="MetaWeblog", preferred="true",
                      apiLink=host + self.metaweblog_path, blogID="1")
        return _xml_response(rsd, "application/rsd+xml")

    @action("/feed/{type}")
    @output_cache("default")
    async def feed(self, request: Request, type: str) -> Response:
        posts = self.blog.get_posts(FEED_ITEMS)
        host = self._host(request)
        kind = type.lower()

        if kind == "rss":
            rss = ET.Element("rss", version="2.0")
            channel = ET.SubElement(rss, "channel")
            ET.SubElement(channel, "title").text = self.settings.name
            ET.SubElement(channel, "link").text = host + "/"
            ET.SubElement(channel, "description").text = self.settings.description
            for post in posts:
                item = ET.SubElement(channel, "item")
                ET.SubElement(item, "title").text = post.title
                ET.SubElement(item, "link").text = host + post.get_link()
                ET.SubElement(item, "guid").text = host + post.get_link()
                ET.SubElement(item, "pubDate").text = format_datetime(post.pub_date)
                ET.SubElement(item, "description").text = post.excerpt or post.render_content()
                for category in post.categories:
                    ET.SubElement(item, "category").text = category
            return _xml_response(rss, "application/rss+xml")

        if kind == "atom":
            feed = ET.Element("feed", xmlns=ATOM_NS)
            ET.SubElement(feed, "title").text = self.settings.name
            ET.SubElement(feed, "id").text = host + "/"
            ET.SubElement(feed, "link", href=host + "/")
            updated = max((p.last_modified for p in posts), default=None)
            if updated is not None:
                ET.SubElement(feed, "updated").text = updated.isoformat()
            author = ET.SubElement(feed, "author")
            ET.SubElement(author, "name").text = self.settings.owner
            for post in posts:
                entry = ET.SubElement(feed, "entry")
                ET.SubElement(entry, "title").text = post.title
                ET.SubElement(entry, "id").text = host + post.get_link()
                ET.SubElement(entry, "link", href=host + post.get_link())
                ET.SubElement(entry, "published").text = post.pub_date.isoformat()
                ET.SubElement(entry, "updated").text = post.last_modified.isoformat()
                ET.SubElement(entry, "summary").text = post.excerpt
                ET.SubElement(entry, "content", type="html").text = post.render_content()
                for category in post.categories:
                    ET.SubElement(entry, "category", term=category)
            return _xml_response(feed, "application/atom+xml")

        raise HTTPException(status_code=404)
