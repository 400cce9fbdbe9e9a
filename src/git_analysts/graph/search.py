"""Name-based relevance search and per-file relation queries over a knowledge graph."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .knowledge_graph import GraphEdge, GraphNode, KnowledgeGraph

logger = logging.getLogger(__name__)

EXACT_MATCH = "exact"
PARTIAL_MATCH = "partial"


@dataclass
class SearchMatch:
    """One search hit, with its neighbouring edges when context was requested."""

    node: GraphNode
    match_type: str
    edges: List[GraphEdge] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "node": self.node.to_dict(),
            "match_type": self.match_type,
            "edges": [edge.to_dict() for edge in self.edges],
        }


@dataclass
class CodeRelations:
    """Nodes declared in a file and the edges touching them."""

    file_path: str
    nodes: List[GraphNode] = field(default_factory=list)
    outgoing: List[GraphEdge] = field(default_factory=list)
    incoming: List[GraphEdge] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_path": self.file_path,
            "nodes": [node.to_dict() for node in self.nodes],
            "outgoing": [edge.to_dict() for edge in self.outgoing],
            "incoming": [edge.to_dict() for edge in self.incoming],
        }


def search_graph(
    graph: KnowledgeGraph,
    query: str,
    max_results: Optional[int] = None,
    include_context: bool = False,
) -> List[SearchMatch]:
    """Find nodes whose name contains the query, case-insensitively.

    Exact name matches rank before partial ones; within each group matches
    are ordered by file path, then by declaration order.

    Args:
        graph: Graph to search
        query: Name fragment to look for
        max_results: Maximum number of matches, None for all
        include_context: Attach edges entering or leaving each matched node

    Returns:
        Ranked matches

    Raises:
        ValueError: If max_results is negative
    """
    if max_results is not None and max_results < 0:
        raise ValueError(f"max_results must be non-negative, got {max_results}")
    if max_results is None:
        logger.debug("No max_results given, returning all matches")

    # The query is matched as given; blank queries match nothing
    if not query.strip():
        return []
    needle = query.lower()

    ranked = []
    for position, node in enumerate(graph.nodes):
        name = node.name.lower()
        if needle not in name:
            continue
        exact = name == needle
        ranked.append(((0 if exact else 1, node.file_path, position), node, exact))

    ranked.sort(key=lambda item: item[0])
    if max_results is not None:
        ranked = ranked[:max_results]

    matches = []
    for _, node, exact in ranked:
        edges = []
        if include_context:
            edges = [edge for edge in graph.edges if node.id in (edge.source, edge.target)]
        matches.append(
            SearchMatch(node=node, match_type=EXACT_MATCH if exact else PARTIAL_MATCH, edges=edges)
        )

    logger.debug(f"Search '{query}' matched {len(matches)} nodes")
    return matches


def get_code_relations(graph: KnowledgeGraph, file_path: str) -> CodeRelations:
    """Collect a file's nodes, the edges leaving them and edges arriving from other files.

    Args:
        graph: Graph to query
        file_path: Repo-relative path of the file

    Returns:
        CodeRelations for the file (empty if the file has no nodes)
    """
    file_nodes = [node for node in graph.nodes if node.file_path == file_path]
    file_ids = {node.id for node in file_nodes}

    outgoing = [edge for edge in graph.edges if edge.source in file_ids]
    incoming = [
        edge for edge in graph.edges if edge.target in file_ids and edge.source not in file_ids
    ]

    return CodeRelations(
        file_path=file_path, nodes=file_nodes, outgoing=outgoing, incoming=incoming
    )
