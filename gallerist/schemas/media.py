# gallerist/schemas/media.py
from dataclasses import dataclass
from datetime import datetime
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field

# Sentinel for a modification time the backend could not give us.
UNKNOWN_DATE = "unknown"

IMAGE_EXT = {".png", ".jpg", ".jpeg", ".gif", ".webp"}
VIDEO_EXT = {".mp4", ".avi", ".mov"}


class MediaItem(BaseModel):
    url: str
    name: str
    kind: Literal["image", "video"]
    size: int = Field(ge=0)
    upload_date: Union[datetime, Literal["unknown"]] = UNKNOWN_DATE
    source_backend: str = Field(exclude=True)
    original_path: str = Field(exclude=True)

    @property
    def has_date(self) -> bool:
        return isinstance(self.upload_date, datetime)


class BackendInfo(BaseModel):
    name: str
    url_prefix: str


@dataclass(frozen=True)
class DirEntry:
    """One raw row from a backend directory listing."""
    name: str
    path: str               # backend-relative, posix separators
    is_dir: bool
    size: Optional[int] = None
    modified: Optional[datetime] = None


@dataclass(frozen=True)
class FileStat:
    size: int
    modified: Optional[datetime] = None
    is_dir: bool = False


@dataclass(frozen=True)
class ByteRange:
    """Inclusive byte span [start, end]."""
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1
