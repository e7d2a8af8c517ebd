"""Path string helpers: parsing, formatting, basenames and hash encodings."""

from __future__ import annotations

import uuid

from .exceptions import InvalidPathError
from .models import HashType, Location, PartialPath, To

DEFAULT_KEY_LENGTH = 8
MAX_KEY_LENGTH = 32


def create_key(length: int = DEFAULT_KEY_LENGTH) -> str:
    """Return a random key for a new location: lowercase hex from a uuid4."""
    if not 1 <= length <= MAX_KEY_LENGTH:
        raise ValueError(f"key length must be between 1 and {MAX_KEY_LENGTH}")
    return uuid.uuid4().hex[:length]


def normalize_search(search: str | None) -> str:
    """Give a non-empty query string its leading ``?``."""
    if search and not search.startswith("?"):
        return "?" + search
    return search or ""


def normalize_hash(hash_: str | None) -> str:
    if hash_ and not hash_.startswith("#"):
        return "#" + hash_
    return hash_ or ""


def create_path(partial: PartialPath | Location) -> str:
    """Join pathname, search and hash into a single path string."""
    pathname = partial.pathname or "/"
    return pathname + normalize_search(partial.search) + normalize_hash(partial.hash)


def parse_path(path: str) -> PartialPath:
    """Split a path string into pathname, search and hash.

    Parts missing from the string are left as ``None`` so they can
    inherit from the current location.
    """
    pathname: str | None = None
    search: str | None = None
    hash_: str | None = None

    if path:
        hash_index = path.find("#")
        if hash_index >= 0:
            hash_ = path[hash_index:]
            path = path[:hash_index]

        search_index = path.find("?")
        if search_index >= 0:
            search = path[search_index:]
            path = path[:search_index]

        if path:
            pathname = path

    return PartialPath(pathname=pathname, search=search, hash=hash_)


def to_partial(to: To) -> PartialPath:
    """Normalize a navigation target to a PartialPath."""
    if isinstance(to, str):
        return parse_path(to)
    if isinstance(to, PartialPath):
        return to
    raise InvalidPathError(repr(to), "target must be a string or PartialPath")


def resolve_pathname(to: str, base: str = "/") -> str:
    """Resolve a possibly relative pathname against ``base``.

    Absolute pathnames are returned unchanged. ``"."`` and ``".."``
    segments are collapsed; ``".."`` never climbs above the root.
    """
    if not to:
        return base
    if to.startswith("/"):
        return to

    base_parts = base.split("/")[:-1]
    if not base_parts or base_parts[0] != "":
        base_parts.insert(0, "")
    parts = base_parts + to.split("/")

    resolved: list[str] = []
    last = len(parts) - 1
    trailing_slash = False
    for i, segment in enumerate(parts):
        if i == 0:
            resolved.append(segment)
            continue
        if segment == ".":
            trailing_slash = i == last
        elif segment == "..":
            if len(resolved) > 1:
                resolved.pop()
            trailing_slash = i == last
        elif segment == "" and i != last:
            continue
        else:
            resolved.append(segment)

    result = "/".join(resolved) or "/"
    if trailing_slash and not result.endswith("/"):
        result += "/"
    return add_leading_slash(result)


# =============================================================================
# Slashes and Basenames
# =============================================================================


def add_leading_slash(path: str) -> str:
    return path if path.startswith("/") else "/" + path


def strip_leading_slash(path: str) -> str:
    return path[1:] if path.startswith("/") else path


def strip_trailing_slash(path: str) -> str:
    return path[:-1] if path.endswith("/") else path


def normalize_basename(basename: str) -> str:
    """Give a basename a leading slash and no trailing slash ("" stays "")."""
    if not basename:
        return ""
    return strip_trailing_slash(add_leading_slash(basename))


def has_basename(path: str, basename: str) -> bool:
    """Whether ``path`` lives under ``basename`` (case-insensitive)."""
    if not basename:
        return True
    if not path.lower().startswith(basename.lower()):
        return False
    rest = path[len(basename):]
    return rest == "" or rest[0] in "/?#"


def strip_basename(path: str, basename: str) -> str:
    return path[len(basename):] if basename and has_basename(path, basename) else path


# =============================================================================
# Hash Fragment Encodings
# =============================================================================


def encode_hash_path(path: str, hash_type: HashType) -> str:
    """Encode a path for storage after the ``#`` of an address."""
    if hash_type is HashType.NOSLASH:
        return strip_leading_slash(path)
    if hash_type is HashType.HASHBANG:
        return path if path.startswith("!") else "!/" + strip_leading_slash(path)
    return add_leading_slash(path)


def decode_hash_path(fragment: str, hash_type: HashType) -> str:
    """Decode a fragment (without its ``#``) back into a path."""
    if hash_type is HashType.HASHBANG and fragment.startswith("!"):
        fragment = fragment[1:]
    return add_leading_slash(fragment)


def split_fragment(url: str) -> tuple[str, str]:
    """Split an address into the part before ``#`` and the fragment."""
    hash_index = url.find("#")
    if hash_index < 0:
        return url, ""
    return url[:hash_index], url[hash_index + 1:]
