from __future__ import annotations

import argparse
import json
import os
import socket
import sys
from importlib import metadata
from pathlib import Path

import tomllib
import uvicorn
from rich.console import Console
from rich.table import Table

from .content import nodes_to_payload, render_markup, title_from_nodes
from .export import ExportResult, export_site, watch_and_export
from .images import make_image_resolver, normalize_base_path
from .library import list_works, load_work
from .logging_utils import build_uvicorn_log_config, debug_enabled, set_debug_logging
from .render import render_html, render_text
from .web import WebConfig, create_app

COMMANDS = ("serve", "list", "render", "build")
DEFAULT_WORKS_DIR = "works"


def _read_local_version() -> str | None:
    try:
        pyproject_path = Path(__file__).resolve().parents[2] / "pyproject.toml"
    except IndexError:  # pragma: no cover - defensive
        return None
    try:
        with pyproject_path.open("rb") as fh:
            data = tomllib.load(fh)
    except (FileNotFoundError, tomllib.TOMLDecodeError):
        return None
    return data.get("project", {}).get("version")


try:
    __version__ = metadata.version("funfic")
except metadata.PackageNotFoundError:
    __version__ = _read_local_version() or "0.0.0+unknown"


def _add_common_arguments(parser: argparse.ArgumentParser, *, root: bool = True) -> None:
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"funfic {__version__}",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Print debug logging for work discovery and loading.",
    )
    if root:
        parser.add_argument(
            "root",
            nargs="?",
            default=os.environ.get("FUNFIC_WORKS_DIR", DEFAULT_WORKS_DIR),
            help="Directory containing the .txt works (default: $FUNFIC_WORKS_DIR or ./works).",
        )


def _add_base_path(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--base-path",
        default=os.environ.get("FUNFIC_BASE_PATH", ""),
        help="URL prefix for generated links, e.g. /fun-fiction-storage (default: $FUNFIC_BASE_PATH).",
    )


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="funfic",
        description="Render Pixiv-notation fiction. Commands: " + ", ".join(COMMANDS) + ".",
    )
    _add_common_arguments(ap, root=False)
    ap.add_argument("command", choices=COMMANDS, help="Command to run.")
    return ap


def build_serve_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="funfic serve",
        description="Serve the works directory as a website.",
    )
    _add_common_arguments(ap)
    _add_base_path(ap)
    ap.add_argument(
        "--host",
        default="0.0.0.0",
        help="Host interface for the web server (default: 0.0.0.0).",
    )
    ap.add_argument(
        "--port",
        type=int,
        default=3000,
        help="Port for the web server (default: 3000).",
    )
    return ap


def build_list_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="funfic list",
        description="List the works found in the works directory.",
    )
    _add_common_arguments(ap)
    return ap


def build_render_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="funfic render",
        description="Render a single work to stdout.",
    )
    _add_common_arguments(ap, root=False)
    _add_base_path(ap)
    ap.add_argument("slug", help="Work identifier (file name without .txt).")
    ap.add_argument(
        "--root",
        default=os.environ.get("FUNFIC_WORKS_DIR", DEFAULT_WORKS_DIR),
        help="Directory containing the .txt works (default: $FUNFIC_WORKS_DIR or ./works).",
    )
    ap.add_argument(
        "-f",
        "--format",
        choices=["text", "html", "json"],
        default="text",
        help="Output format (default: text).",
    )
    return ap


def build_build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="funfic build",
        description="Export the works directory as a static site.",
    )
    _add_common_arguments(ap, root=False)
    _add_base_path(ap)
    ap.add_argument("output", help="Destination directory for the static site.")
    ap.add_argument(
        "--root",
        default=os.environ.get("FUNFIC_WORKS_DIR", DEFAULT_WORKS_DIR),
        help="Directory containing the .txt works (default: $FUNFIC_WORKS_DIR or ./works).",
    )
    ap.add_argument(
        "--watch",
        action="store_true",
        help="Keep running and rebuild whenever a work or image changes.",
    )
    return ap


def _apply_debug(args: argparse.Namespace) -> None:
    if args.debug:
        set_debug_logging(True)


def _resolve_root(value: str) -> Path:
    root = Path(value).expanduser().resolve()
    if not root.is_dir():
        raise SystemExit(f"Works directory not found: {root}")
    return root


def _run_serve(args: argparse.Namespace) -> int:
    root = _resolve_root(args.root)
    config = WebConfig(root=root, base_path=args.base_path)
    app = create_app(config)
    public_ip = _resolve_local_ip(args.host)
    url = f"http://{public_ip}:{args.port}{normalize_base_path(config.base_path)}/"
    print(f"Serving funfic from {root}")
    print(f"Web URL: {url}")
    print("Press Ctrl+C to stop.\n")
    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_level="debug" if debug_enabled() else "info",
        log_config=build_uvicorn_log_config(),
    )
    return 0


def _run_list(args: argparse.Namespace, console: Console) -> int:
    root = _resolve_root(args.root)
    works = list_works(root)
    if not works:
        console.print(f"No works found in {root}")
        return 0
    table = Table(title=f"Works in {root}")
    table.add_column("Slug", style="cyan", no_wrap=True)
    table.add_column("Title")
    for work in works:
        table.add_row(work.slug, work.title)
    console.print(table)
    return 0


def _run_render(args: argparse.Namespace) -> int:
    root = _resolve_root(args.root)
    work = load_work(root, args.slug)
    if work is None or not work.raw_markup:
        raise SystemExit(f"Work not found: {args.slug}")
    nodes = render_markup(work.raw_markup, work.slug, make_image_resolver(args.base_path))
    if args.format == "json":
        payload = {
            "slug": work.slug,
            "title": title_from_nodes(nodes, work.slug),
            "nodes": nodes_to_payload(nodes),
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    elif args.format == "html":
        print(render_html(nodes, base_path=args.base_path))
    else:
        print(work.title)
        print()
        print(render_text(nodes))
    return 0


def _run_build(args: argparse.Namespace, console: Console) -> int:
    root = _resolve_root(args.root)
    config = WebConfig(root=root, base_path=args.base_path)
    output = Path(args.output).expanduser()

    def report(result: ExportResult) -> None:
        console.print(f"[green]Wrote {len(result.pages)} page(s) to {result.output}[/green]")
        for slug in result.skipped:
            console.print(f"[yellow]Skipped empty work: {slug}[/yellow]")

    if not args.watch:
        report(export_site(config, output))
        return 0
    console.print(f"Watching {root} for changes. Press Ctrl+C to stop.")
    try:
        watch_and_export(config, output, on_export=report)
    except KeyboardInterrupt:
        console.print("\nStopping funfic build --watch...")
    return 0


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    console = Console()

    if argv and argv[0] == "serve":
        serve_args = build_serve_parser().parse_args(argv[1:])
        _apply_debug(serve_args)
        return _run_serve(serve_args)
    if argv and argv[0] == "list":
        list_args = build_list_parser().parse_args(argv[1:])
        _apply_debug(list_args)
        return _run_list(list_args, console)
    if argv and argv[0] == "render":
        render_args = build_render_parser().parse_args(argv[1:])
        _apply_debug(render_args)
        return _run_render(render_args)
    if argv and argv[0] == "build":
        build_args = build_build_parser().parse_args(argv[1:])
        _apply_debug(build_args)
        return _run_build(build_args, console)

    build_parser().parse_args(argv)
    return 2


def _resolve_local_ip(host: str) -> str:
    if host not in {"", "0.0.0.0"}:
        return host
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(("8.8.8.8", 80))
            return sock.getsockname()[0]
    except OSError:
        return "127.0.0.1"


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
