# gallerist/utils/http.py
from pathlib import Path, PurePosixPath
from typing import Optional
from urllib.parse import quote

from gallerist.core.errors import ForbiddenError, ValidationError


def safe_rel_under(base: Path, target: Path) -> Optional[Path]:
    """
    Return target's path relative to base if target is inside base, else None.
    Prevents path traversal.
    """
    try:
        return target.resolve().relative_to(base.resolve())
    except (OSError, ValueError):
        return None


def clean_rel_path(path: str) -> str:
    """
    Normalize a client-supplied relative path ('a/b.jpg', '/a//b.jpg').
    Rejects '..' segments and backslashes; '' means the backend root.
    """
    if "\\" in path or "\x00" in path:
        raise ForbiddenError("forbidden path")
    parts = [p for p in PurePosixPath(path).parts if p not in ("/", ".", "")]
    if ".." in parts:
        raise ForbiddenError("forbidden path")
    return "/".join(parts)


def clean_segment(name: Optional[str], field: str = "folderName") -> str:
    """A single file/folder name from a form field; no separators allowed."""
    name = (name or "").strip()
    if not name:
        raise ValidationError(f"{field} is required.")
    if name in (".", "..") or "/" in name or "\\" in name or "\x00" in name:
        raise ValidationError(f"{field} is not a valid name.")
    return name


def join_rel(*parts: str) -> str:
    return "/".join(p.strip("/") for p in parts if p and p.strip("/"))


def media_url(prefix: str, rel_path: str) -> str:
    """Gallery URL for a backend-relative path; each segment percent-encoded."""
    encoded = "/".join(quote(seg, safe="") for seg in rel_path.split("/"))
    return f"{prefix.rstrip('/')}/{encoded}"
