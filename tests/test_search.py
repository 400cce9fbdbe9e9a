"""Tests for relevance search and per-file relation queries."""

import pytest

from conftest import make_element
from git_analysts.graph.knowledge_graph import build_knowledge_graph
from git_analysts.graph.search import get_code_relations, search_graph
from git_analysts.indexer.models import Relation, RelationType


@pytest.fixture
def graph():
    elements = [
        make_element("svc", "UserService", "class", "src/user.ts"),
        make_element("get", "getUser", "method", "src/user.ts", line=3),
        make_element("u2", "user", "variable", "src/z.ts"),
        make_element("u1", "User", "interface", "src/types.ts"),
        make_element("ord", "Order", "class", "src/order.ts"),
        make_element("anon", "", "function", "src/order.ts", line=9),
    ]
    relations = [
        Relation("svc", "get", RelationType.CONTAINS),
        Relation("get", "u1", RelationType.REFERENCES),
        Relation("ord", "svc", RelationType.CALLS),
    ]
    return build_knowledge_graph(elements, relations)


class TestSearchGraph:
    """Name matching and ranking."""

    def test_exact_before_partial_then_path_then_declaration(self, graph):
        matches = search_graph(graph, "user")

        assert [m.node.id for m in matches] == ["u1", "u2", "svc", "get"]
        assert [m.match_type for m in matches] == ["exact", "exact", "partial", "partial"]

    def test_case_insensitive(self, graph):
        assert [m.node.id for m in search_graph(graph, "ORDER")] == ["ord"]

    def test_max_results(self, graph):
        assert [m.node.id for m in search_graph(graph, "user", max_results=2)] == ["u1", "u2"]
        assert search_graph(graph, "user", max_results=0) == []

    def test_negative_max_results_rejected(self, graph):
        with pytest.raises(ValueError):
            search_graph(graph, "user", max_results=-1)

    def test_empty_query(self, graph):
        assert search_graph(graph, "") == []
        assert search_graph(graph, "   ") == []

    def test_query_whitespace_is_significant(self, graph):
        assert search_graph(graph, " user") == []
        assert [m.node.id for m in search_graph(graph, "Service")] == ["svc"]

    def test_no_match(self, graph):
        assert search_graph(graph, "payment") == []

    def test_context_edges_both_directions(self, graph):
        (match,) = search_graph(graph, "UserService", include_context=True)

        assert {(e.source, e.target, e.type) for e in match.edges} == {
            ("svc", "get", "contains"),
            ("ord", "svc", "calls"),
        }

    def test_no_context_by_default(self, graph):
        (match,) = search_graph(graph, "UserService")
        assert match.edges == []

    def test_to_dict(self, graph):
        (match,) = search_graph(graph, "Order")
        data = match.to_dict()

        assert data["node"]["id"] == "ord"
        assert data["match_type"] == "exact"
        assert data["edges"] == []


class TestCodeRelations:
    """Per-file nodes with outgoing and incoming edges."""

    def test_file_relations(self, graph):
        relations = get_code_relations(graph, "src/user.ts")

        assert [n.id for n in relations.nodes] == ["svc", "get"]
        assert {(e.source, e.target) for e in relations.outgoing} == {("svc", "get"), ("get", "u1")}
        assert [(e.source, e.target) for e in relations.incoming] == [("ord", "svc")]

    def test_unknown_file(self, graph):
        relations = get_code_relations(graph, "nope.ts")

        assert relations.nodes == []
        assert relations.outgoing == []
        assert relations.incoming == []
        assert relations.to_dict()["file_path"] == "nope.ts"
