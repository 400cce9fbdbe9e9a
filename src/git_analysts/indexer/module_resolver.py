"""Resolve import specifiers to source files inside a repository.

Only repository files are ever returned. Third-party packages, missing files
and paths escaping the repository root all resolve to ``None``; that is the
normal outcome for external imports, not an error.
"""

import logging
from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

# Suffix and index probing precedence
SOURCE_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx")

# Extensions accepted when the specifier already names a file
RECOGNIZED_EXTENSIONS = SOURCE_EXTENSIONS + (".mts", ".cts", ".mjs", ".cjs", ".vue")

DEFAULT_PATH_ALIASES = {"@/": "src/", "~/": "src/"}


def normalize_posix_path(path: str) -> Optional[str]:
    """Collapse "." and ".." segments of a repo-relative path.

    Returns:
        Normalized path ("" for the root), or None if it escapes the root
    """
    parts: List[str] = []
    for part in PurePosixPath(path).parts:
        if part in {"", ".", "/"}:
            continue
        if part == "..":
            if not parts:
                return None
            parts.pop()
            continue
        parts.append(part)
    return "/".join(parts)


def python_submodule(module: str, name: str) -> str:
    """Dotted name of a submodule ("." + "utils" -> ".utils", "pkg" + "mod" -> "pkg.mod")."""
    return f"{module}{name}" if module.endswith(".") else f"{module}.{name}"


def _join(directory: str, path: str) -> str:
    return f"{directory}/{path}" if directory else path


class ModuleResolver:
    """Map import specifiers to repo-relative file paths."""

    def __init__(
        self,
        repo_root: str,
        known_files: Optional[Iterable[str]] = None,
        path_aliases: Optional[Dict[str, str]] = None,
        extensions: Iterable[str] = SOURCE_EXTENSIONS,
    ):
        """Initialize module resolver.

        Args:
            repo_root: Repository root directory
            known_files: Repo-relative paths to check existence against instead of the disk
            path_aliases: Specifier prefixes mapped to root-relative directories
            extensions: Extension precedence for suffix and index probing
        """
        self.repo_root = Path(repo_root)
        self.known_files = (
            {PurePosixPath(p).as_posix() for p in known_files} if known_files is not None else None
        )
        self.path_aliases = DEFAULT_PATH_ALIASES if path_aliases is None else path_aliases
        self.extensions = tuple(extensions)

    def resolve(self, specifier: str, importing_file_dir: str) -> Optional[str]:
        """Resolve a JavaScript/TypeScript import specifier.

        Args:
            specifier: Raw specifier as written in the import ("./a", "@/utils", "react")
            importing_file_dir: Directory of the importing file (repo-relative or absolute)

        Returns:
            Repo-relative path of the resolved file, or None
        """
        importing_dir = self._relative_dir(importing_file_dir)
        if importing_dir is None or not specifier:
            return None

        base = self._base_path(specifier, importing_dir)
        if base is None:
            logger.debug(f"Import '{specifier}' escapes repository root")
            return None

        resolved = self._probe(base)
        if resolved is None:
            logger.debug(f"Unresolved import '{specifier}' from '{importing_dir or '.'}'")
        return resolved

    def resolve_python_module(self, module: str, importing_file_dir: str) -> Optional[str]:
        """Resolve a Python module path ("pkg.mod", ".sibling", "..parent.mod").

        Args:
            module: Dotted module name, with leading dots for relative imports
            importing_file_dir: Directory of the importing file

        Returns:
            Repo-relative path of the module file or package __init__.py, or None
        """
        importing_dir = self._relative_dir(importing_file_dir)
        if importing_dir is None or not module:
            return None

        level = len(module) - len(module.lstrip("."))
        module_path = module[level:].replace(".", "/")

        if level:
            base_dir: Optional[str] = importing_dir
            for _ in range(level - 1):
                base_dir = normalize_posix_path(_join(base_dir, ".."))
                if base_dir is None:
                    return None
            bases = [_join(base_dir, module_path) if module_path else base_dir]
        else:
            bases = [module_path, _join("src", module_path)]

        for base in bases:
            candidates = [f"{base}.py"] if module_path else []
            candidates.append(_join(base, "__init__.py"))
            for candidate in candidates:
                if self._exists(candidate):
                    return candidate

        logger.debug(f"Unresolved python module '{module}' from '{importing_dir or '.'}'")
        return None

    def resolve_python_import(
        self, module: str, imported_names: Iterable[str], importing_file_dir: str
    ) -> List[str]:
        """Resolve a "from module import a, b" statement.

        Each imported name is tried as a submodule first; the module itself is
        added when any name is not a submodule (it then names a symbol).

        Args:
            module: Dotted module name, with leading dots for relative imports
            imported_names: Names listed after "import"
            importing_file_dir: Directory of the importing file

        Returns:
            Repo-relative paths in import order, duplicates removed
        """
        resolved: List[str] = []
        needs_module = False

        for name in imported_names:
            submodule = (
                self.resolve_python_module(python_submodule(module, name), importing_file_dir)
                if name != "*"
                else None
            )
            if submodule is None:
                needs_module = True
            elif submodule not in resolved:
                resolved.append(submodule)

        if needs_module or not resolved:
            module_path = self.resolve_python_module(module, importing_file_dir)
            if module_path is not None and module_path not in resolved:
                resolved.append(module_path)

        return resolved

    def _relative_dir(self, importing_file_dir: str) -> Optional[str]:
        """Express the importing directory relative to the repository root."""
        directory = Path(importing_file_dir) if importing_file_dir else Path("")
        if directory.is_absolute():
            try:
                directory = directory.relative_to(self.repo_root)
            except ValueError:
                return None
        return normalize_posix_path(directory.as_posix())

    def _base_path(self, specifier: str, importing_dir: str) -> Optional[str]:
        """Turn a specifier into a repo-relative base path to probe."""
        if specifier in (".", "..") or specifier.startswith(("./", "../")):
            return normalize_posix_path(_join(importing_dir, specifier))

        if specifier.startswith("/"):
            return normalize_posix_path(specifier.lstrip("/"))

        for alias, replacement in self.path_aliases.items():
            if specifier.startswith(alias):
                return normalize_posix_path(replacement + specifier[len(alias):])

        # Bare specifier: repository-root relative, or an external package
        return normalize_posix_path(specifier)

    def _probe(self, base: str) -> Optional[str]:
        """Try exact path, then extension suffixes, then directory index files."""
        if base and base.endswith(RECOGNIZED_EXTENSIONS) and self._exists(base):
            return base

        if base:
            for ext in self.extensions:
                candidate = f"{base}{ext}"
                if self._exists(candidate):
                    return candidate

        for ext in self.extensions:
            candidate = _join(base, f"index{ext}")
            if self._exists(candidate):
                return candidate

        return None

    def _exists(self, rel_path: str) -> bool:
        if self.known_files is not None:
            return rel_path in self.known_files
        return (self.repo_root / rel_path).is_file()


def resolve(import_specifier: str, importing_file_dir: str, repo_root: str) -> Optional[str]:
    """Resolve one import specifier against the file system under repo_root."""
    return ModuleResolver(repo_root).resolve(import_specifier, importing_file_dir)
