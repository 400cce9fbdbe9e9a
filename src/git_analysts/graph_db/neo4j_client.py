"""Neo4j export of analyzed code graphs.

Graph nodes become ``CodeElement`` nodes that also carry a label for their
element type (``Class``, ``Function``, ...). Relations are stored with their
type upper-cased:

- CONTAINS: Entity declared inside another entity
- CALLS: Function/method/constructor calls
- INHERITS: Class or interface extension
- IMPLEMENTS: Interface implementation
- IMPORTS: Import statement binding an entity of another file
- REFERENCES: Type usage

The dependency map is stored as ``File`` nodes linked by DEPENDS_ON.
"""

import logging
from typing import Any, Dict, List, Optional

from neo4j import GraphDatabase
from neo4j.exceptions import AuthError, ServiceUnavailable

from ..graph.knowledge_graph import KnowledgeGraph
from ..indexer.models import DependencyEntry, ElementType, RelationType

logger = logging.getLogger(__name__)

ELEMENT_LABELS = {element_type.value: element_type.name.title() for element_type in ElementType}
RELATIONSHIP_TYPES = {relation_type.value: relation_type.name for relation_type in RelationType}


class CodeGraphDB:
    """Neo4j client storing knowledge graphs and dependency maps per repository."""

    def __init__(self, uri: str, user: str, password: str):
        """Initialize Neo4j connection.

        Args:
            uri: Neo4j connection URI (e.g., "bolt://localhost:7687")
            user: Neo4j username
            password: Neo4j password
        """
        self.uri = uri
        self.user = user
        self.driver = None

        try:
            self.driver = GraphDatabase.driver(uri, auth=(user, password))
            logger.info(f"Connected to Neo4j at {uri}")
        except (ServiceUnavailable, AuthError) as e:
            logger.error(f"Failed to connect to Neo4j: {e}")
            raise

    def close(self):
        """Close the Neo4j connection."""
        if self.driver:
            self.driver.close()
            logger.info("Neo4j connection closed")

    def verify_connectivity(self) -> bool:
        """Verify connection to Neo4j.

        Returns:
            True if connection is successful, False otherwise
        """
        try:
            with self.driver.session() as session:
                result = session.run("RETURN 1 AS result")
                return result.single()["result"] == 1
        except Exception as e:
            logger.error(f"Neo4j connectivity check failed: {e}")
            return False

    def create_indexes(self):
        """Create indexes for frequently queried properties."""
        indexes = [
            "CREATE INDEX code_element_id IF NOT EXISTS FOR (n:CodeElement) ON (n.id)",
            "CREATE INDEX code_element_name IF NOT EXISTS FOR (n:CodeElement) ON (n.name)",
            "CREATE INDEX code_element_repo IF NOT EXISTS FOR (n:CodeElement) ON (n.repo_name)",
            "CREATE INDEX file_path IF NOT EXISTS FOR (f:File) ON (f.path)",
            "CREATE INDEX file_repo IF NOT EXISTS FOR (f:File) ON (f.repo_name)",
        ]

        with self.driver.session() as session:
            for index_query in indexes:
                try:
                    session.run(index_query)
                    logger.debug(f"Created index: {index_query}")
                except Exception as e:
                    logger.warning(f"Index creation warning: {e}")

    def upsert_graph(
        self, graph: KnowledgeGraph, repo_name: str, batch_size: int = 1000
    ) -> Dict[str, int]:
        """Write a knowledge graph's nodes and edges.

        Args:
            graph: Graph to store
            repo_name: Repository the graph belongs to
            batch_size: Number of nodes/edges sent per query

        Returns:
            Counts of nodes and relationships written
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")

        nodes_by_label: Dict[str, List[Dict[str, Any]]] = {}
        for node in graph.nodes:
            label = ELEMENT_LABELS.get(node.type, "Entity")
            nodes_by_label.setdefault(label, []).append(
                {
                    "id": node.id,
                    "properties": {
                        "name": node.name,
                        "type": node.type,
                        "file_path": node.file_path,
                        "start_line": node.location.start_line,
                        "start_column": node.location.start_column,
                        "end_line": node.location.end_line,
                        "end_column": node.location.end_column,
                        "implementation": node.implementation,
                        "repo_name": repo_name,
                    },
                }
            )

        rels_by_type: Dict[str, List[Dict[str, Any]]] = {}
        for edge in graph.edges:
            rel_type = RELATIONSHIP_TYPES.get(edge.type, edge.type.upper())
            rels_by_type.setdefault(rel_type, []).append(
                {"source_id": edge.source, "target_id": edge.target, "properties": edge.properties}
            )

        with self.driver.session() as session:
            # Batch insert by label
            for label, label_nodes in nodes_by_label.items():
                query = f"""
                UNWIND $nodes AS node
                MERGE (n:CodeElement {{id: node.id}})
                SET n:{label}
                SET n += node.properties
                """
                for batch in _batches(label_nodes, batch_size):
                    session.run(query, nodes=batch)
                logger.debug(f"Upserted {len(label_nodes)} {label} nodes")

            # Batch insert by type
            for rel_type, type_rels in rels_by_type.items():
                query = f"""
                UNWIND $rels AS rel
                MATCH (source:CodeElement {{id: rel.source_id}})
                MATCH (target:CodeElement {{id: rel.target_id}})
                MERGE (source)-[r:{rel_type}]->(target)
                SET r += rel.properties
                """
                for batch in _batches(type_rels, batch_size):
                    session.run(query, rels=batch)
                logger.debug(f"Upserted {len(type_rels)} {rel_type} relationships")

        logger.info(
            f"Exported {len(graph.nodes)} nodes and {len(graph.edges)} relationships "
            f"for repository: {repo_name}"
        )
        return {"nodes": len(graph.nodes), "relationships": len(graph.edges)}

    def upsert_dependencies(
        self, dependency_map: Dict[str, DependencyEntry], repo_name: str
    ) -> int:
        """Write the file dependency map as File nodes linked by DEPENDS_ON.

        Args:
            dependency_map: Dependency entry per file
            repo_name: Repository the files belong to

        Returns:
            Number of DEPENDS_ON relationships written
        """
        files = [{"path": path} for path in dependency_map]
        links = [
            {"source": entry.file_path, "target": dependency, "position": position}
            for entry in dependency_map.values()
            for position, dependency in enumerate(entry.dependencies)
        ]

        with self.driver.session() as session:
            session.run(
                """
                UNWIND $files AS file
                MERGE (f:File {path: file.path, repo_name: $repo_name})
                """,
                files=files,
                repo_name=repo_name,
            )
            session.run(
                """
                UNWIND $links AS link
                MERGE (source:File {path: link.source, repo_name: $repo_name})
                MERGE (target:File {path: link.target, repo_name: $repo_name})
                MERGE (source)-[r:DEPENDS_ON]->(target)
                SET r.position = link.position
                """,
                links=links,
                repo_name=repo_name,
            )

        logger.info(f"Exported {len(files)} files and {len(links)} dependencies for {repo_name}")
        return len(links)

    def clear_graph(self, repo_name: Optional[str] = None):
        """Clear all nodes and relationships, optionally filtered by repo.

        Args:
            repo_name: If provided, only clear nodes from this repository
        """
        with self.driver.session() as session:
            if repo_name:
                query = """
                MATCH (n {repo_name: $repo_name})
                DETACH DELETE n
                """
                session.run(query, repo_name=repo_name)
                logger.info(f"Cleared graph data for repository: {repo_name}")
            else:
                query = "MATCH (n) DETACH DELETE n"
                session.run(query)
                logger.info("Cleared entire graph database")

    def get_statistics(self) -> Dict[str, Any]:
        """Get graph database statistics.

        Returns:
            Dictionary with node counts per element type and relationship counts per type
        """
        with self.driver.session() as session:
            stats_query = """
            MATCH (n)
            RETURN coalesce(n.type, labels(n)[0]) AS label, count(*) AS count
            """
            node_counts = session.run(stats_query)
            nodes_by_label = {record["label"]: record["count"] for record in node_counts}

            rel_query = """
            MATCH ()-[r]->()
            RETURN type(r) AS type, count(*) AS count
            """
            rel_counts = session.run(rel_query)
            relationships_by_type = {record["type"]: record["count"] for record in rel_counts}

            return {
                "nodes_by_label": nodes_by_label,
                "relationships_by_type": relationships_by_type,
            }

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()


def _batches(items: List[Dict[str, Any]], batch_size: int):
    for i in range(0, len(items), batch_size):
        yield items[i:i + batch_size]
