from __future__ import annotations

from dataclasses import dataclass
from html import escape
from pathlib import Path

from fastapi import FastAPI, HTTPException
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse

from .content import nodes_to_payload, render_markup, title_from_nodes
from .images import ImageUrlResolver, make_image_resolver, normalize_base_path
from .library import Work, list_works, load_work
from .logging_utils import debug_log
from .render import render_html, work_url

__all__ = [
    "WebConfig",
    "create_app",
    "find_image_file",
    "render_index_page",
    "render_work_page",
]

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp")


@dataclass(slots=True)
class WebConfig:
    root: Path
    base_path: str = ""
    images_dir: Path | None = None
    pixiv_images_dir: Path | None = None

    def resolved_images_dir(self) -> Path:
        return self.images_dir or self.root / "images"

    def resolved_pixiv_images_dir(self) -> Path:
        return self.pixiv_images_dir or self.root / "pixiv"


PAGE_HTML = """<!DOCTYPE html>
<html lang="ja">
<head>
  <meta charset="utf-8">
  <title>__TITLE__</title>
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <style>
    body {
      margin: 0 auto;
      max-width: 46rem;
      padding: 1.5rem 1.2rem 3rem;
      font-family: "Hiragino Mincho ProN", "Yu Mincho", serif;
      line-height: 1.9;
    }
    .pixiv-chapter-title { margin-top: 2.4rem; }
    .pixiv-newpage { margin: 2.5rem 0; border: none; border-top: 1px solid #ccc; }
    .pixiv-empty-paragraph { min-height: 1em; }
    .pixiv-uploaded-image, .pixiv-illustration-image { max-width: 100%; }
    .pixiv-illustration-caption { font-size: 0.85rem; color: #666; }
  </style>
</head>
<body>
__BODY__
</body>
</html>
"""


def _page(title: str, body: str) -> str:
    return PAGE_HTML.replace("__TITLE__", escape(title)).replace("__BODY__", body)


def render_index_page(works, *, base_path: str = "") -> str:
    items = "\n".join(
        f'    <li><a href="{escape(work_url(work.slug, base_path=base_path))}">'
        f"{escape(work.title)}</a></li>"
        for work in works
    )
    body = (
        '<main class="container">\n'
        "  <h1>Welcome to Fun Fiction Storage</h1>\n"
        "  <p>Explore our collection of stories and share your own.</p>\n"
        "  <h2>一覧</h2>\n"
        f'  <ul class="works">\n{items}\n  </ul>\n'
        "</main>"
    )
    return _page("Fun Fiction Storage", body)


def render_work_page(
    work: Work,
    *,
    base_path: str = "",
    image_url: ImageUrlResolver | None = None,
) -> str:
    resolver = image_url or make_image_resolver(base_path)
    nodes = render_markup(work.raw_markup, work.slug, resolver)
    body = (
        '<div class="pixiv-novel-container">\n'
        f"<h1>{escape(work.title)}</h1>\n"
        f"{render_html(nodes, base_path=base_path)}\n"
        "</div>"
    )
    return _page(work.title, body)


def find_image_file(directory: Path, stem: str) -> Path | None:
    if not directory.is_dir():
        return None
    for suffix in IMAGE_EXTENSIONS:
        candidate = directory / f"{stem}{suffix}"
        if candidate.is_file():
            return candidate
    return None


def create_app(config: WebConfig) -> FastAPI:
    root = config.root.expanduser().resolve()
    if not root.exists():
        raise FileNotFoundError(f"Works root not found: {root}")

    base_path = normalize_base_path(config.base_path)
    images_dir = config.resolved_images_dir()
    pixiv_dir = config.resolved_pixiv_images_dir()

    app = FastAPI(title="Fun Fiction Storage")
    app.state.config = config
    app.state.root = root

    def _load_or_404(slug: str) -> Work:
        work = load_work(root, slug)
        if work is None or not work.raw_markup:
            debug_log(f"Content for slug {slug!r} is empty or missing, returning 404.")
            raise HTTPException(status_code=404, detail="Work not found")
        return work

    @app.get(f"{base_path}/", response_class=HTMLResponse)
    def index() -> HTMLResponse:
        return HTMLResponse(render_index_page(list_works(root), base_path=base_path))

    @app.get(f"{base_path}/works/{{slug}}", response_class=HTMLResponse)
    def work_page(slug: str) -> HTMLResponse:
        work = _load_or_404(slug)
        return HTMLResponse(render_work_page(work, base_path=base_path))

    @app.get(f"{base_path}/api/works")
    def api_works() -> JSONResponse:
        payload = [
            {
                "slug": work.slug,
                "title": work.title,
                "url": work_url(work.slug, base_path=base_path),
                "modified": work.modified,
            }
            for work in list_works(root)
        ]
        return JSONResponse({"works": payload})

    @app.get(f"{base_path}/api/works/{{slug}}")
    def api_work(slug: str) -> JSONResponse:
        work = _load_or_404(slug)
        nodes = render_markup(work.raw_markup, work.slug, make_image_resolver(base_path))
        return JSONResponse(
            {
                "slug": work.slug,
                "title": title_from_nodes(nodes, work.slug),
                "nodes": nodes_to_payload(nodes),
            }
        )

    @app.get(f"{base_path}/api/uploaded-images/{{image_id}}")
    def api_uploaded_image(image_id: str) -> FileResponse:
        if not image_id.isdigit():
            raise HTTPException(status_code=404, detail="Image not found")
        path = find_image_file(images_dir, image_id)
        if path is None:
            raise HTTPException(status_code=404, detail="Image not found")
        return FileResponse(path)

    @app.get(f"{base_path}/api/pixiv-images/{{illust_id}}/{{page}}")
    def api_pixiv_image(illust_id: str, page: str) -> FileResponse:
        if not illust_id.isdigit() or not page.isdigit():
            raise HTTPException(status_code=404, detail="Image not found")
        path = find_image_file(pixiv_dir, f"{illust_id}_p{page}")
        if path is None:
            raise HTTPException(status_code=404, detail="Image not found")
        return FileResponse(path)

    return app
