"""Extract file-to-file dependencies from import statements.

Import statements are found with per-language regexes after comments are
stripped. A statement that only appears inside a string literal can still
match; that false positive is accepted rather than parsed away.
"""

import logging
import posixpath
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .grammars import LanguageConfig, LanguageRegistry, get_language_registry
from .models import DependencyEntry
from .module_resolver import ModuleResolver

logger = logging.getLogger(__name__)


def strip_comments(content: str, lang_config: LanguageConfig) -> str:
    """Remove block comments and full-line comments from source text.

    Args:
        content: Source text
        lang_config: Language configuration providing the comment syntax

    Returns:
        Source text without comments (line count preserved)
    """
    for regex in lang_config.block_comment_regexes:
        content = regex.sub(lambda m: "\n" * m.group(0).count("\n"), content)

    prefixes = lang_config.line_comment_prefixes
    if not prefixes:
        return content

    return "\n".join(
        "" if line.lstrip().startswith(prefixes) else line for line in content.split("\n")
    )


def _names(listed: Optional[str]) -> List[str]:
    """Names of a "from x import a as b, c" list, without their aliases."""
    if not listed:
        return []
    return [part.split()[0] for part in listed.split(",") if part.strip()]


def find_imports(content: str, lang_config: LanguageConfig) -> List[Tuple[str, List[str]]]:
    """Find import statements in source order.

    Args:
        content: Comment-free source text
        lang_config: Language configuration providing the import regexes

    Returns:
        (specifier, imported names) per statement; names are only filled for
        Python "from ... import" statements
    """
    matches: List[Tuple[int, str, List[str]]] = []
    for regex in lang_config.import_regexes:
        for match in regex.finditer(content):
            if lang_config.resolution == "python":
                names = _names(next((g for g in match.groups()[1:] if g), None))
                # "import a as b, c.d" lists several modules
                for module in _names(match.group(1)):
                    matches.append((match.start(1), module, names))
            else:
                matches.append((match.start(1), match.group(1).strip(), []))

    return [(specifier, names) for _, specifier, names in sorted(matches, key=lambda m: m[0])]


def find_import_specifiers(content: str, lang_config: LanguageConfig) -> List[str]:
    """Find import specifiers in first-occurrence order.

    Args:
        content: Comment-free source text
        lang_config: Language configuration providing the import regexes

    Returns:
        Specifiers as written, duplicates removed
    """
    specifiers: List[str] = []
    for specifier, _ in find_imports(content, lang_config):
        if specifier not in specifiers:
            specifiers.append(specifier)
    return specifiers


class DependencyExtractor:
    """Resolve the repository files each source file depends on."""

    def __init__(
        self,
        repo_root: str,
        registry: Optional[LanguageRegistry] = None,
        resolver: Optional[ModuleResolver] = None,
        known_files: Optional[Iterable[str]] = None,
    ):
        """Initialize dependency extractor.

        Args:
            repo_root: Repository root directory
            registry: Language registry (defaults to the global one)
            resolver: Module resolver (built from repo_root/known_files if omitted)
            known_files: Repo-relative paths to resolve against instead of the disk
        """
        self.repo_root = Path(repo_root)
        self.registry = registry or get_language_registry()
        self.resolver = resolver or ModuleResolver(repo_root, known_files=known_files)

    def extract(self, file_content: str, file_path: str) -> List[str]:
        """Extract resolved dependencies of one file.

        Args:
            file_content: Raw file content
            file_path: Path of the file (repo-relative or absolute under repo_root)

        Returns:
            Ordered, deduplicated repo-relative dependency paths, never including file_path
        """
        lang_config = self.registry.get_config_for_file(file_path)
        if lang_config is None:
            logger.debug(f"Unsupported file type for dependency extraction: {file_path}")
            return []

        rel_path = self._relative_path(file_path)
        importing_dir = posixpath.dirname(rel_path)

        content = file_content
        if lang_config.is_template_wrapper:
            _, content = lang_config.unwrap_template(content)

        dependencies: List[str] = []
        for specifier, names in find_imports(strip_comments(content, lang_config), lang_config):
            if lang_config.resolution == "python":
                candidates = self.resolver.resolve_python_import(specifier, names, importing_dir)
            else:
                candidates = [self.resolver.resolve(specifier, importing_dir)]

            for resolved in candidates:
                if resolved and resolved != rel_path and resolved not in dependencies:
                    dependencies.append(resolved)

        return dependencies

    def _relative_path(self, file_path: str) -> str:
        path = Path(file_path)
        if path.is_absolute():
            try:
                path = path.relative_to(self.repo_root)
            except ValueError:
                pass
        return path.as_posix()


def extract_dependencies(file_content: str, file_path: str, repo_root: str) -> List[str]:
    """Extract resolved dependencies of one file, checking existence on disk."""
    return DependencyExtractor(repo_root).extract(file_content, file_path)


def build_dependency_map(
    files: Dict[str, str], extractor: DependencyExtractor
) -> Dict[str, DependencyEntry]:
    """Extract dependencies for every file in a file map.

    Args:
        files: Repo-relative path to source text
        extractor: Dependency extractor to use

    Returns:
        Dependency entry per file, in the file map's order
    """
    dependency_map: Dict[str, DependencyEntry] = {}
    for file_path, content in files.items():
        dependency_map[file_path] = DependencyEntry(
            file_path=file_path,
            dependencies=extractor.extract(content, file_path),
        )

    total = sum(len(entry.dependencies) for entry in dependency_map.values())
    logger.info(f"Resolved {total} dependencies across {len(dependency_map)} files")
    return dependency_map


def order_files(dependency_map: Dict[str, DependencyEntry]) -> List[str]:
    """Order files so that dependencies come before their dependents.

    Depth-first post-order starting from files in path order; import cycles
    are broken at the edge that closes them.

    Args:
        dependency_map: Dependency entry per file

    Returns:
        All files of the map in dependency-aware order
    """
    ordered: List[str] = []
    done: Set[str] = set()

    for root in sorted(dependency_map):
        if root in done:
            continue

        in_progress = {root}
        stack = [(root, iter(dependency_map[root].dependencies))]
        while stack:
            current, pending = stack[-1]
            for dep in pending:
                if dep in dependency_map and dep not in done and dep not in in_progress:
                    in_progress.add(dep)
                    stack.append((dep, iter(dependency_map[dep].dependencies)))
                    break
            else:
                stack.pop()
                in_progress.discard(current)
                done.add(current)
                ordered.append(current)

    return ordered
