"""Allow-list sanitizers for every untrusted string that ends up in a path.

Partition hints, uploaded filenames and file references all pass through
here before touching the filesystem. Nothing else in the app builds paths
from request input.
"""

import re
from pathlib import Path, PurePosixPath

SEGMENT_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,63}$")
STORED_NAME_RE = re.compile(r"^[0-9]{1,20}-[0-9a-f]{8}-[A-Za-z0-9_-]{1,50}\.[a-z0-9]{1,10}$")
_STEM_DISALLOWED = re.compile(r"[^A-Za-z0-9_-]")
_EXT_DISALLOWED = re.compile(r"[^a-z0-9]")

MAX_STEM_LEN = 50
MAX_EXT_LEN = 10


class UnsafePathError(ValueError):
    pass


def safe_segment(value: str) -> str:
    """Validate a single directory segment such as a partition name."""
    value = (value or "").strip()
    if not SEGMENT_RE.match(value):
        raise UnsafePathError(f"invalid path segment: {value!r}")
    return value


def _basename(original_name: str) -> str:
    # Browsers on Windows may send the full client path.
    return PurePosixPath((original_name or "").replace("\\", "/")).name


def safe_stem(original_name: str) -> str:
    name = _basename(original_name)
    stem = name.rsplit(".", 1)[0] if "." in name.lstrip(".") else name
    stem = _STEM_DISALLOWED.sub("", stem)[:MAX_STEM_LEN]
    return stem or "file"


def safe_extension(original_name: str, default: str) -> str:
    name = _basename(original_name).lstrip(".")
    if "." not in name:
        return default
    ext = _EXT_DISALLOWED.sub("", name.rsplit(".", 1)[1].lower())[:MAX_EXT_LEN]
    return f".{ext}" if ext else default


def safe_stored_name(value: str) -> str:
    """Validate a name previously produced by the ingestor."""
    value = (value or "").strip()
    if not STORED_NAME_RE.match(value):
        raise UnsafePathError(f"invalid file name: {value!r}")
    return value


def confine(root: Path, *parts: str) -> Path:
    """Join ``parts`` under ``root`` and refuse anything resolving outside it."""
    root = root.resolve()
    target = root.joinpath(*parts).resolve()
    if target == root or not target.is_relative_to(root):
        raise UnsafePathError("path escapes storage root")
    return target
