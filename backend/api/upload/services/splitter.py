"""Splitter: Cuts an oversized file into parts Telegram will accept."""

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Iterator

from config import BOT_CONFIG, TEMP_DIR

COPY_BUFFER = 1024 * 1024  # 1MB


@dataclass(frozen=True)
class FilePart:
    number: int
    path: Path
    name: str
    size: int


def part_name(name: str, number: int) -> str:
    """``movie.mkv`` -> ``movie_part2.mkv``."""
    pure = PurePath(name)
    ext = pure.suffix
    return f"{pure.stem}_part{number}{ext}"


def split(
    source_path: str | Path,
    name: str,
    part_size: int = BOT_CONFIG.part_size,
    temp_dir: Path = TEMP_DIR,
) -> Iterator[FilePart]:
    """Yield the parts of ``source_path`` one at a time.

    Each part is written to its own temp file before it is yielded; deleting it
    is the caller's job. Nothing is read ahead, so at most one part sits on
    disk if the caller removes each part after using it.
    """
    if part_size <= 0:
        raise ValueError("part_size must be positive")

    with open(source_path, "rb") as src:
        number = 1
        while True:
            fd, tmp_name = tempfile.mkstemp(prefix="split_", dir=temp_dir)
            written = 0
            with os.fdopen(fd, "wb") as out:
                while written < part_size:
                    chunk = src.read(min(COPY_BUFFER, part_size - written))
                    if not chunk:
                        break
                    out.write(chunk)
                    written += len(chunk)

            if written == 0:
                os.unlink(tmp_name)
                return

            yield FilePart(
                number=number,
                path=Path(tmp_name),
                name=part_name(name, number),
                size=written,
            )
            number += 1
