"""JAR manifest parsing.

Reads the main section of ``META-INF/MANIFEST.MF`` from archives
(WAR/HPI/JAR) or exploded directories. Continuation lines (starting with
a single space) are joined to the previous attribute. Bytes that are not
valid UTF-8 are replaced rather than rejected.
"""

from __future__ import annotations

import zipfile
from pathlib import Path

MANIFEST_ENTRY = "META-INF/MANIFEST.MF"


def parse_manifest(text: str) -> dict[str, str]:
    """Parse the main section of a manifest.

    Args:
        text: Manifest content.

    Returns:
        Attribute name -> value for the main section.
    """
    attributes: dict[str, str] = {}
    last_key: str | None = None

    for raw_line in text.splitlines():
        if not raw_line:
            # Blank line ends the main section
            break
        if raw_line.startswith(" ") and last_key is not None:
            attributes[last_key] += raw_line[1:]
            continue
        key, sep, value = raw_line.partition(":")
        if not sep:
            continue
        last_key = key.strip()
        attributes[last_key] = value.strip()

    return attributes


def read_manifest(path: Path) -> dict[str, str]:
    """Read the manifest of an archive file or exploded directory.

    Args:
        path: Archive file or exploded directory.

    Returns:
        Main-section attributes (empty if there is no manifest).

    Raises:
        zipfile.BadZipFile: If path is a file but not a zip archive.
    """
    if path.is_dir():
        manifest_path = path / MANIFEST_ENTRY
        if not manifest_path.is_file():
            return {}
        return parse_manifest(manifest_path.read_text(encoding="utf-8", errors="replace"))

    with zipfile.ZipFile(path) as archive:
        try:
            data = archive.read(MANIFEST_ENTRY)
        except KeyError:
            return {}
    return parse_manifest(data.decode("utf-8", errors="replace"))


__all__ = ["MANIFEST_ENTRY", "parse_manifest", "read_manifest"]
