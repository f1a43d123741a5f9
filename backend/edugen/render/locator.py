"""
Finding the files render tools leave behind.

Tools bury their output in nested directories (Manim writes under
``media/videos/<module>/<resolution>/``), so both lookups walk the whole
workspace iteratively.
"""

import os
from pathlib import Path
from typing import Iterator, Optional, Union

PathLike = Union[str, Path]


def walk_files(root: PathLike) -> Iterator[Path]:
    """Yield every regular file under ``root``, using an explicit stack."""
    stack = [str(root)]
    while stack:
        current = stack.pop()
        with os.scandir(current) as entries:
            for entry in entries:
                if entry.is_dir(follow_symlinks=False):
                    stack.append(entry.path)
                elif entry.is_file(follow_symlinks=False):
                    yield Path(entry.path)


def find_file(root: PathLike, name: str) -> Optional[Path]:
    """Return the first file called exactly ``name``, or None."""
    for path in walk_files(root):
        if path.name == name:
            return path
    return None


def find_vector_output(root: PathLike, ext: str, stem: str = "out") -> Optional[Path]:
    """
    Locate Asymptote output.

    Asymptote writes ``out.svg`` for a single picture but numbers the files
    (``out-0.svg``, ``out-1.svg``, ...) when a program ships several. The
    preferred names win in that order; otherwise the first file with the
    right extension met during the walk is returned.
    """
    suffix = f".{ext}"
    preferred = [f"{stem}{suffix}", f"{stem}-0{suffix}", f"{stem}-1{suffix}"]
    found = {}
    fallback = None
    for path in walk_files(root):
        if path.name == preferred[0]:
            return path
        if path.name in preferred:
            found.setdefault(path.name, path)
        elif fallback is None and path.suffix == suffix:
            fallback = path

    for name in preferred[1:]:
        if name in found:
            return found[name]
    return fallback
