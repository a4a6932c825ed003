"""Filename and object key helpers."""

from typing import Any, Optional

from .exceptions import InvalidArgumentError


def extension_of(name: Any) -> Optional[str]:
    """
    Return the text after the last ``.`` of a filename.

    Args:
        name: Filename to inspect

    Returns:
        The extension, or None when the name has no ``.``

    Raises:
        InvalidArgumentError: If name is not a string
    """
    if not isinstance(name, str):
        raise InvalidArgumentError("name must be provided and a valid string")
    if "." not in name:
        return None
    return name.rsplit(".", 1)[1]


def with_extension(name: Any, extension: Any) -> str:
    """
    Replace the extension of a filename, appending one if it has none.

    Raises:
        InvalidArgumentError: If either argument is not a non-empty string
    """
    if not name or not isinstance(name, str):
        raise InvalidArgumentError("name must be provided and a valid string")
    if not extension or not isinstance(extension, str):
        raise InvalidArgumentError("extension must be provided and a valid string")

    if "." not in name:
        return f"{name}.{extension}"
    stem = name.rsplit(".", 1)[0]
    return f"{stem}.{extension}"


def with_suffix(name: Any, suffix: Any) -> str:
    """
    Insert ``_{suffix}`` right before the final extension.

    ``with_suffix("a.b.jpg", "x")`` gives ``"a.b_x.jpg"``. A missing or empty
    suffix leaves the name untouched.

    Raises:
        InvalidArgumentError: If name is not a string or has no extension
    """
    if not name or not isinstance(name, str):
        raise InvalidArgumentError("name must be provided and a valid string")
    if not suffix or not isinstance(suffix, str):
        return name
    if "." not in name:
        raise InvalidArgumentError("The name must be a file format (e.g. filename.jpg)")

    stem, extension = name.rsplit(".", 1)
    return f"{stem}_{suffix}.{extension}"


def build_object_key(base_path: str, filename: str) -> str:
    """Join a store prefix and a filename into an object key without stray slashes."""
    parts = [part.strip("/") for part in (base_path or "").split("/")]
    parts = [part for part in parts if part]
    parts.append(filename)
    return "/".join(parts)


def join_url(host: str, *segments: str) -> str:
    """Join a host (with or without scheme) and path segments with single slashes."""
    url = host.rstrip("/")
    for segment in segments:
        cleaned = (segment or "").strip("/")
        if cleaned:
            url = f"{url}/{cleaned}"
    return url
