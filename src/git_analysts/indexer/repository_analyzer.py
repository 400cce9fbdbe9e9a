"""Repository analysis pipeline and query facade."""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from ..graph.knowledge_graph import KnowledgeGraph, build_knowledge_graph
from ..graph.search import CodeRelations, SearchMatch, get_code_relations, search_graph
from .analysis_context import AnalysisContext
from .ast_visitor import ASTVisitor
from .dependency_extractor import DependencyExtractor, build_dependency_map, order_files
from .grammars import LanguageRegistry, get_language_registry
from .models import DependencyEntry, FileAnalysisResult
from .module_resolver import ModuleResolver

logger = logging.getLogger(__name__)


@dataclass
class AnalysisReport:
    """Everything one repository run produced."""

    graph: KnowledgeGraph
    dependencies: Dict[str, DependencyEntry]
    file_order: List[str]
    failed_files: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "graph": self.graph.to_dict(),
            "dependencies": {
                path: entry.dependencies for path, entry in self.dependencies.items()
            },
            "file_order": list(self.file_order),
            "failed_files": dict(self.failed_files),
        }


class RepositoryAnalyzer:
    """Analyze repository files into a knowledge graph and dependency map."""

    def __init__(
        self,
        repo_root: str,
        registry: Optional[LanguageRegistry] = None,
        known_files: Optional[Iterable[str]] = None,
        max_workers: int = 1,
        strict_parse: bool = True,
        path_aliases: Optional[Dict[str, str]] = None,
    ):
        """Initialize repository analyzer.

        Args:
            repo_root: Repository root directory
            registry: Language registry (defaults to the global one)
            known_files: Repo-relative paths imports may resolve to. When omitted,
                analyze_repository resolves against the files it is given and
                analyze() checks the disk.
            max_workers: Worker threads for per-file extraction (1 = sequential)
            strict_parse: Treat files with syntax errors as failed
            path_aliases: Import prefixes mapped to root-relative directories
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")

        self.repo_root = str(Path(repo_root))
        self.registry = registry or get_language_registry()
        self.known_files = set(known_files) if known_files is not None else None
        self.max_workers = max_workers
        self.strict_parse = strict_parse
        self.path_aliases = path_aliases

        self.context = AnalysisContext()
        self.dependency_map: Dict[str, DependencyEntry] = {}
        self.file_order: List[str] = []
        self._graph: Optional[KnowledgeGraph] = None

    def _make_resolver(self, known_files: Optional[Iterable[str]]) -> ModuleResolver:
        return ModuleResolver(
            self.repo_root, known_files=known_files, path_aliases=self.path_aliases
        )

    def reset(self) -> None:
        """Discard everything analyzed so far and start a new run."""
        self.context = AnalysisContext()
        self.dependency_map = {}
        self.file_order = []
        self._graph = None
        logger.info(f"Started analysis run {self.context.run_id}")

    def analyze(self, file_path: str, source_code: str) -> FileAnalysisResult:
        """Analyze one file and merge it into the current run.

        Args:
            file_path: Repo-relative path of the file
            source_code: File content

        Returns:
            The file's analysis result (failures are recorded, not raised)

        Raises:
            ValueError: If file_path is empty
        """
        resolver = self._make_resolver(self.known_files)
        visitor = ASTVisitor(self.registry, resolver, self.strict_parse)

        result = visitor.analyze_file(file_path, source_code, self.context)
        self.context.merge(result)

        extractor = DependencyExtractor(self.repo_root, self.registry, resolver)
        self.dependency_map[file_path] = DependencyEntry(
            file_path=file_path, dependencies=extractor.extract(source_code, file_path)
        )
        if file_path not in self.file_order:
            self.file_order.append(file_path)
        self._graph = None
        return result

    def analyze_repository(
        self, files: Dict[str, str], timeout: Optional[float] = None
    ) -> AnalysisReport:
        """Run the whole pipeline over a file map.

        The run is built in a fresh context and only replaces the analyzer's
        state once it has completed.

        Args:
            files: Repo-relative path to source text
            timeout: Seconds the run may take, None for no limit

        Returns:
            AnalysisReport with graph, dependencies, file order and failed files

        Raises:
            TimeoutError: If the run did not finish within timeout
        """
        start_time = time.monotonic()
        deadline = start_time + timeout if timeout is not None else None

        known_files = self.known_files if self.known_files is not None else files.keys()
        resolver = self._make_resolver(known_files)

        dependency_map = build_dependency_map(
            files, DependencyExtractor(self.repo_root, self.registry, resolver)
        )
        file_order = order_files(dependency_map)
        _check_deadline(deadline)

        context = AnalysisContext()
        visitor = ASTVisitor(self.registry, resolver, self.strict_parse)
        logger.info(f"Analyzing {len(file_order)} files (run {context.run_id})")

        if self.max_workers > 1:
            results = self._visit_parallel(visitor, context, files, file_order, deadline)
        else:
            results = self._visit_sequential(visitor, context, files, file_order, deadline)

        for result in results:
            context.merge(result)

        graph = build_knowledge_graph(context.elements, context.all_relations())

        self.context = context
        self.dependency_map = dependency_map
        self.file_order = file_order
        self._graph = graph

        elapsed = time.monotonic() - start_time
        logger.info(
            f"Analyzed {len(context.analyzed_files)} files in {elapsed:.2f}s "
            f"({len(context.failed_files)} failed)"
        )
        return AnalysisReport(
            graph=graph,
            dependencies=dependency_map,
            file_order=file_order,
            failed_files=dict(context.failed_files),
        )

    def _visit_sequential(
        self,
        visitor: ASTVisitor,
        context: AnalysisContext,
        files: Dict[str, str],
        file_order: List[str],
        deadline: Optional[float],
    ) -> List[FileAnalysisResult]:
        results = []
        for file_path in file_order:
            _check_deadline(deadline)
            results.append(visitor.analyze_file(file_path, files[file_path], context))
        return results

    def _visit_parallel(
        self,
        visitor: ASTVisitor,
        context: AnalysisContext,
        files: Dict[str, str],
        file_order: List[str],
        deadline: Optional[float],
    ) -> List[FileAnalysisResult]:
        """Visit files on worker threads; results come back in file order."""
        # Ordinals are claimed up front so ids do not depend on scheduling
        ordinals = {file_path: context.claim_file_ordinal() for file_path in file_order}

        executor = ThreadPoolExecutor(max_workers=self.max_workers)
        try:
            futures = [
                executor.submit(
                    visitor.analyze_file, file_path, files[file_path], context, ordinals[file_path]
                )
                for file_path in file_order
            ]

            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            _, not_done = wait(futures, timeout=remaining)
            if not_done:
                raise TimeoutError(
                    f"Analysis timed out with {len(not_done)} of {len(futures)} files pending"
                )

            return [future.result() for future in futures]
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def build_graph(self) -> KnowledgeGraph:
        """Build (or return the cached) graph of the current run."""
        if self._graph is None:
            self._graph = build_knowledge_graph(self.context.elements, self.context.all_relations())
        return self._graph

    def search_related_code(
        self, query: str, max_results: Optional[int] = None, include_context: bool = False
    ) -> List[SearchMatch]:
        """Search the current graph by entity name."""
        return search_graph(self.build_graph(), query, max_results, include_context)

    def get_code_relations(self, file_path: str) -> CodeRelations:
        """Get a file's entities and the relations touching them."""
        return get_code_relations(self.build_graph(), file_path)

    def get_dependencies(self, file_path: str) -> List[str]:
        """Get the resolved dependencies of an analyzed file ([] if unknown)."""
        entry = self.dependency_map.get(file_path)
        return list(entry.dependencies) if entry else []


def _check_deadline(deadline: Optional[float]) -> None:
    if deadline is not None and time.monotonic() >= deadline:
        raise TimeoutError("Analysis timed out")
