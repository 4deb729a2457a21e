import json
import threading
import urllib.error
import urllib.request

import pytest

from quillpress.server import DevServer

from helpers import create_project, load, write_doc


@pytest.fixture
def base_url(tmp_path):
    project = create_project(tmp_path)
    write_doc(project, "posts", "hello", "Hi **there**", createdAt="2024-01-01T00:00:00.000Z")
    write_doc(project, "pages", "about", "About")
    uploads = project / "content" / "uploads"
    uploads.mkdir(parents=True)
    (uploads / "note.txt").write_text("uploaded", encoding="utf-8")

    server = DevServer(load(project))
    server.port = 0
    httpd = server.make_server("127.0.0.1")
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{httpd.server_address[1]}"
    httpd.shutdown()
    server.stop()
    thread.join(timeout=5)


def fetch(url):
    try:
        with urllib.request.urlopen(url, timeout=5) as response:
            return response.status, response.headers, response.read().decode("utf-8")
    except urllib.error.HTTPError as exc:
        return exc.code, exc.headers, exc.read().decode("utf-8")


def test_default_port_comes_from_config(tmp_path):
    systems = load(create_project(tmp_path))
    assert DevServer(systems).port == 8080
    assert DevServer(systems, port=5055).port == 5055


def test_serves_rendered_pages(base_url):
    status, headers, body = fetch(f"{base_url}/post/hello")
    assert status == 200
    assert headers["Content-Type"].startswith("text/html")
    assert headers["Cache-Control"].startswith("no-cache")
    assert "<strong>there</strong>" in body

    status, _, body = fetch(f"{base_url}/post/missing")
    assert status == 404
    assert "<h1>Not Found</h1>" in body


def test_serves_feeds(base_url):
    status, headers, body = fetch(f"{base_url}/rss.xml")
    assert status == 200
    assert headers["Content-Type"].startswith("application/rss+xml")
    assert body.count("<item>") == 1


def test_serves_assets_and_uploads(base_url):
    status, _, body = fetch(f"{base_url}/content/themes/test/assets/css/style.css")
    assert (status, body) == (200, "body {}")
    assert fetch(f"{base_url}/assets/css/style.css")[2] == "body {}"
    assert fetch(f"{base_url}/content/uploads/note.txt")[2] == "uploaded"
    assert fetch(f"{base_url}/content/uploads/%2E%2E/data/settings.json")[0] == 404
    assert fetch(f"{base_url}/content/themes/ghost/assets/x.css")[0] == 404


def test_json_api(base_url):
    status, headers, body = fetch(f"{base_url}/api/posts")
    assert status == 200
    assert headers["Content-Type"].startswith("application/json")
    assert [post["slug"] for post in json.loads(body)["data"]] == ["hello"]

    assert json.loads(fetch(f"{base_url}/api/pages?pageType=normal")[2])["data"][0]["slug"] == "about"
    assert json.loads(fetch(f"{base_url}/api/settings")[2])["data"]["siteTitle"] == "Test Site"

    status, _, body = fetch(f"{base_url}/api/posts/nope")
    assert status == 404
    assert json.loads(body)["code"] == "NOT_FOUND"
    assert fetch(f"{base_url}/api/unknown")[0] == 404
