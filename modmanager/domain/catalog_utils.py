import hashlib
import re
from typing import Any, List
from urllib.parse import urlparse

VERSION_SUFFIX_RE = re.compile(r"^(.*)-(\d+\.\d+\.\d+)$")
HEX_SEGMENT_RE = re.compile(r"^[0-9a-fA-F]{16,}$")


def strip_version_suffix(name: str) -> str:
    """
    Drop a trailing "-X.Y.Z" from a mod identifier.

    "Author-Mod-1.0.0" -> "Author-Mod"; names without a version are returned as-is.
    """
    match = VERSION_SUFFIX_RE.match(name)
    if match:
        return match.group(1)
    return name


def match_text(value: str, keyword: str) -> bool:
    """Case-insensitive substring match. An empty keyword matches everything."""
    if not keyword:
        return True
    return keyword.lower() in (value or "").lower()


def extract_content_hash(url: str) -> str:
    """
    Pull the content hash out of a chunk URL.

    Chunk URLs look like ".../packages/<hex-hash>.json.gz"; the first hex-looking
    path segment (searching from the end, extensions removed) is the hash.
    URLs without one are keyed by the SHA-256 of the whole URL.
    """
    path = urlparse(url).path
    for segment in reversed([s for s in path.split("/") if s]):
        stem = segment.split(".", 1)[0]
        if HEX_SEGMENT_RE.match(stem):
            return stem.lower()
    return hashlib.sha256(url.encode("utf-8")).hexdigest()


# Best-effort field readers for loosely-typed catalog records.

def as_str(value: Any, default: str = "") -> str:
    if isinstance(value, str):
        return value
    return default


def as_int(value: Any, default: int = 0) -> int:
    # bool is an int subclass; a boolean is never a valid count
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    return default


def as_bool(value: Any, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    return default


def as_str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, str)]
