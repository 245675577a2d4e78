"""File handler module: encoding-aware reads and atomic writes.

Every file in the local mirror goes through these two functions, so a
record on disk is either the previous version or the new one, never a
partial write.
"""

import os
import shutil
import tempfile
from pathlib import Path

from charset_normalizer import from_bytes

# =============================================================================
# File Read/Write
# =============================================================================


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read a file with automatic encoding detection.

    Reads raw bytes first and tries UTF-8, then uses charset-normalizer to
    detect the encoding. Defaults to UTF-8 for empty files or when detection
    fails. A leading byte order mark is never part of the returned content.

    Args:
        path: Path to the file to read.

    Returns:
        Tuple of (content_string, detected_encoding).

    Raises:
        OSError: If the file cannot be read.
    """
    raw = path.read_bytes()
    if not raw:
        return ("", "utf-8")

    try:
        # Mirror files are written as UTF-8; only fall back to detection
        # for files edited by other tools.
        return (raw.decode("utf-8-sig"), "utf-8")
    except UnicodeDecodeError:
        pass

    result = from_bytes(raw).best()
    if result is None:
        encoding = "utf-8"
        content = raw.decode(encoding, errors="replace")
    else:
        encoding = result.encoding
        if encoding == "ascii":
            encoding = "utf-8"
        content = str(result)
    return (content.removeprefix("\ufeff"), encoding)


def write_file(
    path: Path, content: str, encoding: str = "utf-8"
) -> int:
    """Write content atomically, creating parent directories as needed.

    Writes to a temporary file in the target directory then replaces the
    target with ``os.replace()`` so readers never see partial data.

    Args:
        path: Path to the output file.
        content: String content to write.
        encoding: Encoding to use (default: utf-8).

    Returns:
        Number of bytes written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    encoded = content.encode(encoding)

    fd, tmp_path = tempfile.mkstemp(
        dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(encoded)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
    return len(encoded)


def remove_tree(path: Path) -> bool:
    """Remove a file or directory tree.

    Returns:
        ``True`` if something was removed, ``False`` if *path* did not exist.
    """
    if path.is_dir():
        shutil.rmtree(path)
        return True
    if path.exists():
        path.unlink()
        return True
    return False
