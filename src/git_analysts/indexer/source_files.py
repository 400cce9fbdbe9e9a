"""Collect the supported source files of a local checkout."""

import logging
from pathlib import Path
from typing import Dict, List, Optional

from gitignore_parser import parse_gitignore

from .grammars import LanguageRegistry, get_language_registry

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDES = {
    "node_modules",
    ".git",
    "__pycache__",
    ".pytest_cache",
    "venv",
    ".venv",
    "dist",
    "build",
    ".next",
    ".nuxt",
    "vendor",
}


def collect_source_files(
    repo_root: str,
    registry: Optional[LanguageRegistry] = None,
    exclude_patterns: Optional[List[str]] = None,
    follow_gitignore: bool = True,
) -> Dict[str, str]:
    """Read every supported file under a directory.

    Args:
        repo_root: Directory to scan
        registry: Language registry deciding which files are supported
        exclude_patterns: Glob patterns to skip (e.g. "*.test.ts", "generated/*")
        follow_gitignore: Whether to respect the root .gitignore

    Returns:
        Map of repo-relative posix path to file content, sorted by path
    """
    registry = registry or get_language_registry()
    root = Path(repo_root)
    if not root.is_dir():
        raise ValueError(f"Not a directory: {repo_root}")

    gitignore_matcher = None
    if follow_gitignore:
        gitignore_path = root / ".gitignore"
        if gitignore_path.exists():
            try:
                gitignore_matcher = parse_gitignore(gitignore_path)
                logger.info(f"Loaded .gitignore from {gitignore_path}")
            except Exception as e:
                logger.warning(f"Error parsing .gitignore: {e}")

    files: Dict[str, str] = {}
    for file_path in sorted(root.rglob("*")):
        if not file_path.is_file():
            continue

        if not registry.is_supported_file(str(file_path)):
            continue

        rel_path = file_path.relative_to(root)
        if any(excluded in rel_path.parts for excluded in DEFAULT_EXCLUDES):
            continue

        if gitignore_matcher and gitignore_matcher(str(file_path)):
            continue

        if exclude_patterns and any(rel_path.match(pattern) for pattern in exclude_patterns):
            continue

        try:
            files[rel_path.as_posix()] = file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Skipping unreadable file {file_path}: {e}")

    logger.info(f"Collected {len(files)} source files from {repo_root}")
    return files
