"""FastMCP server exposing repository knowledge graphs and dependency maps."""

import logging
import os
from pathlib import Path
from typing import Optional

from mcp.server.fastmcp import FastMCP

from .graph_db.neo4j_client import CodeGraphDB
from .indexer.grammars import get_language_registry
from .tools.graph_tool import GraphTool

logger = logging.getLogger(__name__)

# Initialize FastMCP server
mcp = FastMCP("git-analysts")

# Global components (initialized on startup)
graph_tool: Optional[GraphTool] = None


def get_env_config():
    """Get configuration from environment variables."""
    timeout = os.getenv("ANALYSIS_TIMEOUT", "")
    exclude_patterns = os.getenv("EXCLUDE_PATTERNS", "")
    languages_config = os.getenv("LANGUAGES_CONFIG", "")
    return {
        "workspace_path": os.getenv("WORKSPACE_PATH", "/workspace"),
        "languages_config": Path(languages_config) if languages_config else None,
        "max_workers": int(os.getenv("MAX_WORKERS", "1")),
        "analysis_timeout": float(timeout) if timeout else None,
        "exclude_patterns": [p.strip() for p in exclude_patterns.split(",") if p.strip()],
        "follow_gitignore": os.getenv("FOLLOW_GITIGNORE", "true").lower() == "true",
        "neo4j_uri": os.getenv("NEO4J_URI", "bolt://localhost:7687"),
        "neo4j_user": os.getenv("NEO4J_USER", "neo4j"),
        "neo4j_password": os.getenv("NEO4J_PASSWORD", ""),
    }


def configure_logging():
    """Send logs to the console and to LOG_FILE."""
    log_level = os.getenv("LOG_LEVEL", "INFO")
    log_file = os.getenv("LOG_FILE", "/tmp/git-analysts.log")

    # Create formatters and handlers
    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)

    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)


def initialize_components():
    """Initialize all components on startup."""
    global graph_tool

    config = get_env_config()
    logger.info("Initializing git-analysts...")

    try:
        registry = get_language_registry(config["languages_config"])
        logger.info(f"Supported extensions: {', '.join(registry.get_supported_extensions())}")

        graph_tool = GraphTool(
            registry=registry,
            max_workers=config["max_workers"],
            timeout=config["analysis_timeout"],
        )
        logger.info("All components initialized successfully!")

    except Exception as e:
        logger.error(f"Error during initialization: {e}")
        raise


@mcp.tool()
def analyze_repository(
    exclude_patterns: Optional[list[str]] = None,
    timeout: Optional[float] = None,
) -> dict:
    """Analyze the mounted workspace into a knowledge graph and dependency map.

    Args:
        exclude_patterns: Glob patterns of files to skip (defaults to EXCLUDE_PATTERNS)
        timeout: Maximum seconds the analysis may take

    Returns:
        Run statistics and the dependency-aware file order
    """
    if not graph_tool:
        return {"success": False, "error": "Server not initialized"}

    config = get_env_config()

    # Always use mounted workspace path (host paths don't exist inside container)
    return graph_tool.analyze_path(
        config["workspace_path"],
        exclude_patterns=exclude_patterns or config["exclude_patterns"],
        follow_gitignore=config["follow_gitignore"],
        timeout=timeout,
    )


@mcp.tool()
def search_related_code(
    query: str,
    max_results: Optional[int] = None,
    include_context: bool = False,
) -> dict:
    """Search analyzed code entities by name.

    Exact name matches come first, then partial matches, ordered by file path.

    Args:
        query: Name or name fragment (e.g., "UserService", "parse")
        max_results: Maximum number of results (all matches when omitted)
        include_context: Include the relations entering and leaving each match

    Returns:
        Ranked matching entities
    """
    if not graph_tool:
        return {"success": False, "error": "Server not initialized"}

    return graph_tool.search_related_code(query, max_results, include_context)


@mcp.tool()
def get_code_relations(file_path: str) -> dict:
    """Get the entities declared in a file with their outgoing and incoming relations.

    Args:
        file_path: Repository-relative path (e.g., "src/services/user.ts")

    Returns:
        Entities, outgoing relations and incoming relations from other files
    """
    if not graph_tool:
        return {"success": False, "error": "Server not initialized"}

    return graph_tool.get_code_relations(file_path)


@mcp.tool()
def get_dependencies(file_path: str) -> dict:
    """Get the repository files a file imports, in import order.

    Args:
        file_path: Repository-relative path

    Returns:
        Resolved dependency paths
    """
    if not graph_tool:
        return {"success": False, "error": "Server not initialized"}

    return graph_tool.get_dependencies(file_path)


@mcp.tool()
def get_graph_stats() -> dict:
    """Get node and edge counts of the current knowledge graph.

    Returns:
        Counts by entity type and relation type
    """
    if not graph_tool:
        return {"success": False, "error": "Server not initialized"}

    return graph_tool.get_graph_stats()


@mcp.tool()
def export_to_neo4j(repo_name: str, clear_existing: bool = True) -> dict:
    """Export the current knowledge graph and dependency map to Neo4j.

    Args:
        repo_name: Name the repository is stored under
        clear_existing: Delete previously exported data for this repository first

    Returns:
        Export counts
    """
    if not graph_tool or graph_tool.analyzer is None:
        return {"success": False, "error": "No repository analyzed yet"}

    config = get_env_config()

    try:
        with CodeGraphDB(
            config["neo4j_uri"], config["neo4j_user"], config["neo4j_password"]
        ) as graph_db:
            if not graph_db.verify_connectivity():
                return {"success": False, "error": f"Cannot reach Neo4j at {config['neo4j_uri']}"}

            graph_db.create_indexes()
            if clear_existing:
                graph_db.clear_graph(repo_name)

            counts = graph_db.upsert_graph(graph_tool.analyzer.build_graph(), repo_name)
            dependency_count = graph_db.upsert_dependencies(
                graph_tool.analyzer.dependency_map, repo_name
            )

        return {
            "success": True,
            "repo_name": repo_name,
            "nodes": counts["nodes"],
            "relationships": counts["relationships"],
            "dependencies": dependency_count,
        }

    except Exception as e:
        logger.error(f"Error exporting to Neo4j: {e}")
        return {"success": False, "error": str(e)}


@mcp.tool()
def health_check() -> dict:
    """Check health status of all components.

    Returns:
        Dictionary with health status of each component
    """
    config = get_env_config()
    health = {
        "graph_tool": graph_tool is not None,
        "repository_analyzed": graph_tool is not None and graph_tool.analyzer is not None,
        "workspace_exists": Path(config["workspace_path"]).exists(),
    }

    return {
        "success": True,
        "status": "healthy" if health["graph_tool"] else "degraded",
        "components": health,
    }


def main():
    configure_logging()
    logger.info("Starting git-analysts MCP Server...")

    initialize_components()
    logger.info("Server ready!")

    # Run the MCP server (blocks until shutdown)
    try:
        mcp.run()
    except KeyboardInterrupt:
        logger.info("Server interrupted")
    except Exception as e:
        logger.error(f"Server error: {e}")
        raise


if __name__ == "__main__":
    main()
