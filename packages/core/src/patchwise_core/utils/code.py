from __future__ import annotations

import fnmatch
import logging

logger = logging.getLogger(__name__)

IGNORED_EXTENSIONS = {
    # documents and data the reviewer has nothing to say about
    "pdf",
    "md",
    "json",
    "env",
    "toml",
    "ipynb",
    # media
    "png",
    "jpg",
    "jpeg",
    "gif",
    "svg",
    "ico",
    "webp",
    "bmp",
    "mp4",
    "mp3",
    "wav",
    "ogg",
    # fonts
    "woff",
    "woff2",
    "ttf",
    "eot",
    "otf",
    # archives and binaries
    "zip",
    "tar",
    "gz",
    "rar",
    "7z",
    "wasm",
    "lock",  # e.g. Pipfile.lock, Cargo.lock
}

IGNORED_FILENAMES = {
    "package-lock.json",
    "yarn.lock",
    ".gitignore",
    "package.json",
    "tsconfig.json",
    "poetry.lock",
    "readme.md",
    "packages.txt",
    "requirements.txt",
}


def is_reviewable_file(file_name: str) -> bool:
    """Return True if a changed file should be sent to the model.

    Rejects well-known manifests and lockfiles by (case-insensitive) basename,
    files without an extension, and binary/media/doc formats by extension.
    """
    basename = file_name.lower().rsplit("/", 1)[-1]
    if basename in IGNORED_FILENAMES:
        logger.debug("Filtering out ignored file: %s", file_name)
        return False
    if "." not in basename:
        logger.debug("Filtering out file with no extension: %s", file_name)
        return False
    extension = basename.rsplit(".", 1)[-1]
    if extension in IGNORED_EXTENSIONS:
        logger.debug("Filtering out file with ignored extension: %s (.%s)", file_name, extension)
        return False
    return True


def is_excluded(filename: str, patterns: list[str]) -> bool:
    """Return True if filename matches any user-configured exclude pattern.

    Supports:
    - fnmatch globs on the full path: "src/generated/*.py"
    - fnmatch globs on the basename: "*.min.js"
    - Directory names/prefixes: "migrations/", "tests" (matches any file within that tree)
    """
    for pattern in patterns:
        if fnmatch.fnmatch(filename, pattern):
            return True
        if fnmatch.fnmatch(filename.rsplit("/", 1)[-1], pattern):
            return True
        prefix = pattern.rstrip("/") + "/"
        if filename.startswith(prefix) or ("/" + prefix) in filename:
            return True
    return False
