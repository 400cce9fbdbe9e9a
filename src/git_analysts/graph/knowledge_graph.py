"""Knowledge graph assembly from extracted code elements and relations."""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Set, Tuple

from ..indexer.models import CodeElement, Location, Relation

logger = logging.getLogger(__name__)


@dataclass
class GraphNode:
    """A code element as it appears in the graph."""

    id: str
    name: str
    type: str
    file_path: str
    location: Location
    implementation: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "file_path": self.file_path,
            "location": asdict(self.location),
            "implementation": self.implementation,
        }


@dataclass
class GraphEdge:
    """A directed relation between two graph nodes."""

    source: str
    target: str
    type: str
    properties: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "target": self.target,
            "type": self.type,
            "properties": dict(self.properties),
        }


@dataclass
class KnowledgeGraph:
    """Nodes and edges of one analysis run. Every edge endpoint is a node id."""

    nodes: List[GraphNode] = field(default_factory=list)
    edges: List[GraphEdge] = field(default_factory=list)

    def node_ids(self) -> Set[str]:
        return {node.id for node in self.nodes}

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form used by the CLI and the server tools."""
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
        }


def validate_relations(
    node_ids: Set[str], relations: Iterable[Relation]
) -> Tuple[List[Relation], List[Relation]]:
    """Split relations into those whose endpoints both exist and the rest.

    Args:
        node_ids: Ids of the known elements
        relations: Candidate relations

    Returns:
        Tuple of (valid relations, dropped relations), order preserved
    """
    valid: List[Relation] = []
    dropped: List[Relation] = []
    for relation in relations:
        if relation.source_id in node_ids and relation.target_id in node_ids:
            valid.append(relation)
        else:
            dropped.append(relation)
    return valid, dropped


def build_knowledge_graph(
    elements: Iterable[CodeElement], relations: Iterable[Relation]
) -> KnowledgeGraph:
    """Build a graph from elements and the relations between them.

    Nodes keep the element order. A relation becomes an edge only if both of
    its endpoint ids belong to an element; the others are dropped and reported
    as a single warning. The inputs are not modified, so building twice from
    the same inputs gives equal graphs.

    Args:
        elements: Code elements (graph nodes)
        relations: Relations between elements, by id

    Returns:
        KnowledgeGraph without dangling edges
    """
    nodes = [
        GraphNode(
            id=element.id,
            name=element.name,
            type=element.type.value,
            file_path=element.file_path,
            location=element.location,
            implementation=element.implementation,
        )
        for element in elements
    ]

    valid, dropped = validate_relations({node.id for node in nodes}, relations)
    if dropped:
        logger.warning(f"Dropped {len(dropped)} relations with missing endpoints")
        for relation in dropped:
            logger.debug(
                f"Dropped {relation.type.value} relation {relation.source_id} -> {relation.target_id}"
            )

    edges = [
        GraphEdge(source=relation.source_id, target=relation.target_id, type=relation.type.value)
        for relation in valid
    ]

    logger.info(f"Built knowledge graph with {len(nodes)} nodes and {len(edges)} edges")
    return KnowledgeGraph(nodes=nodes, edges=edges)
