"""Configuration paths and static tables shared by the analysis pipeline."""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(os.environ.get("DEADWEIGHT_HOME", str(Path.home() / ".deadweight"))).expanduser()
USER_CONFIG_FILE = BASE_DIR / "config.toml"
PROJECT_CONFIG_NAME = ".deadweight.toml"

# Lives inside the analyzed project; never part of the inventory.
TRASH_DIR_NAME = ".deadweight_trash"
TRASH_SESSIONS_DIR = "sessions"
TRASH_LOG_NAME = "deletions.jsonl"

SCRIPT_EXTENSIONS = (".js", ".jsx", ".mjs", ".cjs")
TYPED_EXTENSIONS = (".ts", ".tsx", ".mts", ".cts")
MARKUP_EXTENSIONS = (".vue", ".svelte", ".astro")
SOURCE_EXTENSIONS = SCRIPT_EXTENSIONS + TYPED_EXTENSIONS + MARKUP_EXTENSIONS

# Order matters: it is the probe order for extensionless specifiers.
RESOLVE_EXTENSIONS = (
    ".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".mts", ".cts",
    ".vue", ".svelte", ".astro", ".json",
)

ASSET_EXTENSIONS = {
    ".png", ".jpg", ".jpeg", ".gif", ".webp", ".avif", ".svg", ".ico", ".bmp",
    ".tiff", ".mp4", ".webm", ".mp3", ".wav", ".ogg", ".woff", ".woff2",
    ".ttf", ".otf", ".eot", ".pdf", ".txt", ".css", ".scss", ".sass", ".less",
}

MANIFEST_NAMES = {"package.json", "tsconfig.json", "jsconfig.json"}

IGNORED_DIRS = {
    "node_modules", ".git", TRASH_DIR_NAME, "dist", "build", "coverage",
    "target", ".next", "out", ".nuxt", ".svelte-kit", ".turbo", ".cache",
}

DEFAULT_JOBS = min(32, (os.cpu_count() or 1) + 4)
