#!/usr/bin/env python3
"""Standalone analysis script - analyzes a repository, writes JSON and exits."""

import json
import logging
import os
import sys
from pathlib import Path

# Setup logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def main():
    """Main analysis function."""
    try:
        from git_analysts.indexer.grammars import get_language_registry
        from git_analysts.indexer.repository_analyzer import RepositoryAnalyzer
        from git_analysts.indexer.source_files import collect_source_files

        # Get configuration from environment
        workspace_path = os.getenv("WORKSPACE_PATH", "/workspace")
        repo_name = os.getenv("REPO_NAME")
        languages_config = os.getenv("LANGUAGES_CONFIG")
        max_workers = int(os.getenv("MAX_WORKERS", "1"))
        timeout = os.getenv("ANALYSIS_TIMEOUT")
        exclude_patterns = [
            p.strip() for p in os.getenv("EXCLUDE_PATTERNS", "").split(",") if p.strip()
        ]
        follow_gitignore = os.getenv("FOLLOW_GITIGNORE", "true").lower() == "true"
        output_path = os.getenv("OUTPUT_PATH")
        neo4j_uri = os.getenv("NEO4J_URI")

        # Auto-generate repo_name if not provided
        if not repo_name:
            repo_name = Path(workspace_path).name
            logger.info(f"Auto-generated repo_name: {repo_name}")

        logger.info(f"Starting analysis for repository: {repo_name}")
        logger.info(f"Workspace path: {workspace_path}")

        if not Path(workspace_path).exists():
            logger.error(f"Repository path does not exist: {workspace_path}")
            sys.exit(1)

        registry = get_language_registry(Path(languages_config) if languages_config else None)

        logger.info("Scanning for files...")
        files = collect_source_files(
            workspace_path,
            registry=registry,
            exclude_patterns=exclude_patterns,
            follow_gitignore=follow_gitignore,
        )

        if not files:
            logger.error("No supported files found in repository")
            sys.exit(1)

        analyzer = RepositoryAnalyzer(workspace_path, registry=registry, max_workers=max_workers)
        report = analyzer.analyze_repository(files, timeout=float(timeout) if timeout else None)

        for file_path, error in report.failed_files.items():
            logger.warning(f"Failed to analyze {file_path}: {error}")

        output = {"repo_name": repo_name, **report.to_dict()}
        if output_path:
            with open(output_path, "w") as f:
                json.dump(output, f, indent=2)
            logger.info(f"Wrote analysis to {output_path}")
        else:
            json.dump(output, sys.stdout, indent=2)
            sys.stdout.write("\n")

        if neo4j_uri:
            from git_analysts.graph_db.neo4j_client import CodeGraphDB

            logger.info(f"Exporting to Neo4j at {neo4j_uri}")
            with CodeGraphDB(
                neo4j_uri,
                os.getenv("NEO4J_USER", "neo4j"),
                os.getenv("NEO4J_PASSWORD", ""),
            ) as graph_db:
                if not graph_db.verify_connectivity():
                    logger.error("Neo4j connectivity check failed!")
                    sys.exit(1)
                graph_db.create_indexes()
                graph_db.clear_graph(repo_name)
                graph_db.upsert_graph(report.graph, repo_name)
                graph_db.upsert_dependencies(report.dependencies, repo_name)

        logger.info(
            f"Analysis complete: {len(report.graph.nodes)} nodes, "
            f"{len(report.graph.edges)} edges, {len(report.failed_files)} failed files"
        )
        sys.exit(0)

    except TimeoutError as e:
        logger.error(f"Analysis timed out: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Analysis failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
