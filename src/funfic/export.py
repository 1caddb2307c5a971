from __future__ import annotations

import json
import shutil
import threading
from dataclasses import dataclass, field
from pathlib import Path

from watchdog.events import FileSystemEventHandler
from watchdog.observers.polling import PollingObserver

from .content import nodes_to_payload, render_markup, title_from_nodes
from .images import (
    PIXIV_IMAGES_ROUTE,
    UPLOADED_IMAGES_ROUTE,
    ImageKind,
    ImageUrlResolver,
    default_image_url,
    normalize_base_path,
)
from .library import WORK_SUFFIX, list_works, load_work
from .logging_utils import debug_log
from .render import work_url
from .web import WebConfig, find_image_file, render_index_page, render_work_page

__all__ = ["ExportResult", "export_site", "static_image_resolver", "watch_and_export"]


@dataclass(slots=True)
class ExportResult:
    output: Path
    pages: list[Path] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def _write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def _copy_images(source: Path, destination: Path) -> None:
    if destination.exists():
        shutil.rmtree(destination)
    if source.is_dir():
        shutil.copytree(source, destination)


def static_image_resolver(config: WebConfig, base_path: str = "") -> ImageUrlResolver:
    """
    Resolve images to the copied files, extension included.

    The live server maps extensionless ids to files on request. A static host
    cannot, so exported pages link to ``/api/uploaded-images/3.png`` or
    ``/api/pixiv-images/55_p1.jpg``. Images with no local file keep the server URL.
    """
    base = normalize_base_path(base_path)
    images_dir = config.resolved_images_dir()
    pixiv_dir = config.resolved_pixiv_images_dir()

    def resolve(kind: ImageKind, image_id: str, page: str | None = None) -> str:
        if kind == "uploaded":
            found = find_image_file(images_dir, image_id)
            route = UPLOADED_IMAGES_ROUTE
        else:
            found = find_image_file(pixiv_dir, f"{image_id}_p{page or '0'}")
            route = PIXIV_IMAGES_ROUTE
        if found is None:
            debug_log(f"No local file for {kind} image {image_id!r}")
            return default_image_url(kind, image_id, page, base_path=base)
        return f"{base}{route}/{found.name}"

    return resolve


def export_site(config: WebConfig, output: Path) -> ExportResult:
    """
    Write a static copy of the site into ``output``.

    Image folders are copied under the image routes and pages link to the
    copied file names, so the site works from any static host serving
    ``output`` at ``config.base_path``.
    """
    root = config.root.expanduser().resolve()
    if not root.is_dir():
        raise FileNotFoundError(f"Works root not found: {root}")
    output = output.expanduser().resolve()
    base_path = normalize_base_path(config.base_path)
    result = ExportResult(output=output)
    image_url = static_image_resolver(config, base_path)

    works = list_works(root)
    result.pages.append(
        _write(output / "index.html", render_index_page(works, base_path=base_path))
    )
    index_payload = []
    for listing in works:
        work = load_work(root, listing.slug)
        if work is None or not work.raw_markup:
            debug_log(f"Skipping empty or unreadable work {listing.slug!r}")
            result.skipped.append(listing.slug)
            continue
        page_path = output / "works" / work.slug / "index.html"
        page_html = render_work_page(work, base_path=base_path, image_url=image_url)
        result.pages.append(_write(page_path, page_html))
        nodes = render_markup(work.raw_markup, work.slug, image_url)
        payload = {
            "slug": work.slug,
            "title": title_from_nodes(nodes, work.slug),
            "nodes": nodes_to_payload(nodes),
        }
        _write(
            output / "api" / "works" / f"{work.slug}.json",
            json.dumps(payload, ensure_ascii=False, indent=2),
        )
        index_payload.append(
            {
                "slug": work.slug,
                "title": work.title,
                "url": work_url(work.slug, base_path=base_path),
            }
        )
    _write(
        output / "api" / "works.json",
        json.dumps({"works": index_payload}, ensure_ascii=False, indent=2),
    )
    _copy_images(config.resolved_images_dir(), output / "api" / "uploaded-images")
    _copy_images(config.resolved_pixiv_images_dir(), output / "api" / "pixiv-images")
    debug_log(f"Exported {len(result.pages)} page(s) to {output}")
    return result


class _WorksChangeHandler(FileSystemEventHandler):
    def __init__(self, output: Path, trigger: threading.Event) -> None:
        self.output = output
        self.trigger = trigger

    def on_any_event(self, event) -> None:  # type: ignore[override]
        src_path = Path(str(event.src_path))
        try:
            src_path.relative_to(self.output)
            return
        except ValueError:
            pass
        if event.is_directory:
            return
        if src_path.suffix == WORK_SUFFIX or src_path.parent.name in {"images", "pixiv"}:
            self.trigger.set()


def watch_and_export(
    config: WebConfig,
    output: Path,
    *,
    on_export=None,
    stop: threading.Event | None = None,
    interval: float = 1.0,
) -> None:
    """Export once, then re-export whenever works or images change until ``stop`` is set."""
    root = config.root.expanduser().resolve()
    output = output.expanduser().resolve()
    stop = stop or threading.Event()
    trigger = threading.Event()

    result = export_site(config, output)
    if on_export is not None:
        on_export(result)

    observer = PollingObserver(timeout=interval)
    observer.schedule(_WorksChangeHandler(output, trigger), str(root), recursive=True)
    observer.start()
    try:
        while not stop.is_set():
            if not trigger.wait(timeout=interval):
                continue
            trigger.clear()
            result = export_site(config, output)
            if on_export is not None:
                on_export(result)
    finally:
        observer.stop()
        observer.join()
