"""MCP tool for analyzing repositories and querying the resulting knowledge graph."""

import logging
from collections import Counter
from typing import List, Optional

from ..indexer.grammars import LanguageRegistry, get_language_registry
from ..indexer.repository_analyzer import RepositoryAnalyzer
from ..indexer.source_files import collect_source_files

logger = logging.getLogger(__name__)


class GraphTool:
    """Tool wrapping a repository analyzer for the server and the CLI."""

    def __init__(
        self,
        registry: Optional[LanguageRegistry] = None,
        max_workers: int = 1,
        timeout: Optional[float] = None,
    ):
        """Initialize graph tool.

        Args:
            registry: Language registry (defaults to the global one)
            max_workers: Worker threads used for per-file extraction
            timeout: Default run timeout in seconds, None for no limit
        """
        self.registry = registry or get_language_registry()
        self.max_workers = max_workers
        self.timeout = timeout
        self.analyzer: Optional[RepositoryAnalyzer] = None
        self.repo_path: Optional[str] = None

    def analyze_path(
        self,
        repo_path: str,
        exclude_patterns: Optional[List[str]] = None,
        follow_gitignore: bool = True,
        timeout: Optional[float] = None,
    ) -> dict:
        """Analyze a local checkout and keep the result for later queries.

        Args:
            repo_path: Repository root directory
            exclude_patterns: Glob patterns of files to skip
            follow_gitignore: Whether to respect the root .gitignore
            timeout: Run timeout in seconds (defaults to the tool's timeout)

        Returns:
            Dictionary with run statistics
        """
        try:
            logger.info(f"Analyzing repository: {repo_path}")
            files = collect_source_files(
                repo_path,
                registry=self.registry,
                exclude_patterns=exclude_patterns,
                follow_gitignore=follow_gitignore,
            )

            analyzer = RepositoryAnalyzer(
                repo_path, registry=self.registry, max_workers=self.max_workers
            )
            report = analyzer.analyze_repository(
                files, timeout=timeout if timeout is not None else self.timeout
            )

            self.analyzer = analyzer
            self.repo_path = repo_path

            return {
                "success": True,
                "repo_path": repo_path,
                "files_analyzed": len(files) - len(report.failed_files),
                "failed_files": report.failed_files,
                "nodes": len(report.graph.nodes),
                "edges": len(report.graph.edges),
                "file_order": report.file_order,
            }

        except Exception as e:
            logger.error(f"Error analyzing repository: {e}")
            return {"success": False, "error": str(e)}

    def search_related_code(
        self,
        query: str,
        max_results: Optional[int] = None,
        include_context: bool = False,
    ) -> dict:
        """Search analyzed entities by name.

        Args:
            query: Name fragment to search for
            max_results: Maximum number of results, None for all
            include_context: Include edges touching each match

        Returns:
            Dictionary with ranked matches
        """
        if self.analyzer is None:
            return {"success": False, "error": "No repository analyzed yet"}

        try:
            matches = self.analyzer.search_related_code(query, max_results, include_context)
            return {
                "success": True,
                "query": query,
                "total_results": len(matches),
                "results": [match.to_dict() for match in matches],
            }

        except Exception as e:
            logger.error(f"Error searching code: {e}")
            return {"success": False, "error": str(e)}

    def get_code_relations(self, file_path: str) -> dict:
        """Get the entities of a file and the relations touching them."""
        if self.analyzer is None:
            return {"success": False, "error": "No repository analyzed yet"}

        try:
            relations = self.analyzer.get_code_relations(file_path)
            return {"success": True, **relations.to_dict()}

        except Exception as e:
            logger.error(f"Error getting code relations: {e}")
            return {"success": False, "error": str(e)}

    def get_dependencies(self, file_path: str) -> dict:
        """Get the repository files a file imports."""
        if self.analyzer is None:
            return {"success": False, "error": "No repository analyzed yet"}

        return {
            "success": True,
            "file_path": file_path,
            "dependencies": self.analyzer.get_dependencies(file_path),
        }

    def get_graph_stats(self) -> dict:
        """Count nodes and edges of the current graph by type."""
        if self.analyzer is None:
            return {"success": False, "error": "No repository analyzed yet"}

        try:
            graph = self.analyzer.build_graph()
            return {
                "success": True,
                "repo_path": self.repo_path,
                "total_nodes": len(graph.nodes),
                "total_edges": len(graph.edges),
                "nodes_by_type": dict(Counter(node.type for node in graph.nodes)),
                "edges_by_type": dict(Counter(edge.type for edge in graph.edges)),
                "failed_files": dict(self.analyzer.context.failed_files),
            }

        except Exception as e:
            logger.error(f"Error getting graph stats: {e}")
            return {"success": False, "error": str(e)}
