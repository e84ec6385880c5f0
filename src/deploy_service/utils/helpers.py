"""
Helper functions for the deploy_service.
"""
from pathlib import PurePosixPath, PureWindowsPath
from typing import Optional, Tuple


def to_camel(string: str) -> str:
    """
    Convert a snake_case string to camelCase.

    Example:
        >>> to_camel("snake_case")
        'snakeCase'
    """
    first, *others = string.split("_")
    return first + "".join(word.capitalize() for word in others)


def parse_site_and_application(
    site_name: str, application_path: Optional[str] = None
) -> Tuple[str, Optional[str]]:
    """
    Split a site reference into (site, application).

    An explicit application path wins. Otherwise a site name of the form
    "site/app" is split on the first slash.

    Example:
        >>> parse_site_and_application("shop/checkout")
        ('shop', 'checkout')
        >>> parse_site_and_application("shop", "admin")
        ('shop', 'admin')
    """
    site_name = site_name.strip().strip("/")
    if application_path and application_path.strip().strip("/"):
        return site_name, application_path.strip().strip("/")

    if "/" in site_name:
        site, application = site_name.split("/", 1)
        return site, application.strip("/") or None

    return site_name, None


def is_safe_relative_path(path: str) -> bool:
    """
    True when `path` is relative and cannot climb out of the directory it is
    joined onto: no drive or root, no '..' segment, no ':' anywhere.
    """
    if not path or ":" in path:
        return False
    for flavour in (PurePosixPath(path), PureWindowsPath(path)):
        if flavour.is_absolute() or flavour.anchor:
            return False
        if ".." in flavour.parts:
            return False
    return True


def tail_text(text: Optional[str], limit: int) -> str:
    """Keep the last `limit` characters of `text`, marking any cut."""
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return "..." + text[-(limit - 3):]
