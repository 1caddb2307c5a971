from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .logging_utils import debug_log
from .markup import extract_title

__all__ = [
    "WORK_SUFFIX",
    "Work",
    "WorkListing",
    "WorkNotFoundError",
    "list_work_slugs",
    "list_works",
    "load_work",
    "read_work_markup",
    "resolve_work_path",
]

WORK_SUFFIX = ".txt"


class WorkNotFoundError(FileNotFoundError):
    """Raised when a slug does not name a readable work under the works root."""


@dataclass(slots=True)
class WorkListing:
    slug: str
    title: str
    path: Path
    modified: float


@dataclass(slots=True)
class Work:
    slug: str
    title: str
    raw_markup: str
    path: Path


def list_work_slugs(root: Path) -> list[str]:
    """Return the stems of ``*.txt`` files in ``root``, sorted; [] if it is missing."""
    debug_log(f"Checking works directory at {root}")
    if not root.is_dir():
        debug_log(f"Works directory not found at {root}")
        return []
    try:
        entries = sorted(root.iterdir())
    except OSError as exc:
        debug_log(f"Error reading works directory {root}: {exc}")
        return []
    slugs = [
        entry.stem
        for entry in entries
        if entry.suffix == WORK_SUFFIX and entry.is_file() and not entry.name.startswith(".")
    ]
    debug_log(f"Detected slugs: {slugs}")
    return slugs


def resolve_work_path(root: Path, slug: str) -> Path:
    if not isinstance(slug, str) or not slug.strip():
        raise WorkNotFoundError("Work slug is required.")
    if slug.startswith(".") or "/" in slug or "\\" in slug:
        raise WorkNotFoundError(f"Invalid work slug: {slug}")
    resolved_root = root.resolve()
    candidate = (resolved_root / f"{slug}{WORK_SUFFIX}").resolve()
    try:
        candidate.relative_to(resolved_root)
    except ValueError as exc:
        raise WorkNotFoundError(f"Invalid work slug: {slug}") from exc
    if not candidate.is_file():
        raise WorkNotFoundError(f"Work not found: {slug}")
    return candidate


def read_work_markup(root: Path, slug: str) -> str:
    path = resolve_work_path(root, slug)
    debug_log(f"Reading work {slug!r} from {path}")
    try:
        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            text = path.read_text(encoding="utf-8", errors="ignore")
    except OSError as exc:
        debug_log(f"Error reading work {slug!r}: {exc}")
        raise WorkNotFoundError(f"Work not readable: {slug}") from exc
    debug_log(f"Read work {slug!r}, content length {len(text)}")
    return text


def load_work(root: Path, slug: str) -> Work | None:
    try:
        raw = read_work_markup(root, slug)
    except WorkNotFoundError as exc:
        debug_log(str(exc))
        return None
    return Work(
        slug=slug,
        title=extract_title(raw, slug),
        raw_markup=raw,
        path=root / f"{slug}{WORK_SUFFIX}",
    )


def list_works(root: Path) -> list[WorkListing]:
    listings: list[WorkListing] = []
    for slug in list_work_slugs(root):
        path = root / f"{slug}{WORK_SUFFIX}"
        try:
            raw = read_work_markup(root, slug)
            modified = path.stat().st_mtime
        except (WorkNotFoundError, OSError):
            continue
        listings.append(
            WorkListing(
                slug=slug,
                title=extract_title(raw, slug),
                path=path,
                modified=modified,
            )
        )
    return listings
