"""Archive writer service.

Packs the photos staged in a scratch directory into a single ZIP file.
Entries are written in ascending photo index so the archive contents do not
depend on download completion order or filesystem listing order.
"""

import os
import zipfile
from pathlib import Path
from typing import List

from utils.naming import entry_index

ENTRY_MODE = 0o755


def staged_entries(src_dir: Path) -> List[Path]:
    """Return the staged photo files in `src_dir`, ordered by index.

    Files that do not follow the `image_<n>.jpg` convention are skipped.
    """
    indexed = []
    for path in Path(src_dir).iterdir():
        index = entry_index(path.name)
        if index is not None and path.is_file():
            indexed.append((index, path))
    return [path for _, path in sorted(indexed)]


def write_archive(src_dir: Path, dst_file: Path) -> List[str]:
    """Write every staged photo in `src_dir` into the ZIP file `dst_file`.

    Args:
        src_dir: Scratch directory holding `image_<n>.jpg` files.
        dst_file: Path of the archive to create; overwritten if present.

    Returns:
        The entry names in the order they were written.

    Raises:
        FileNotFoundError: If `src_dir` does not exist.
        OSError: If a file cannot be read or the archive cannot be written.
    """
    if not os.path.isdir(src_dir):
        raise FileNotFoundError(f"Scratch directory not found: {src_dir}")
    names: List[str] = []
    with zipfile.ZipFile(dst_file, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for path in staged_entries(Path(src_dir)):
            info = zipfile.ZipInfo.from_file(path, arcname=path.name)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = (0o100000 | ENTRY_MODE) << 16
            archive.writestr(info, path.read_bytes())
            names.append(path.name)
    return names
