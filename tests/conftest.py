"""Shared fixtures for git-analysts tests."""

import pytest

from git_analysts.indexer.analysis_context import AnalysisContext
from git_analysts.indexer.ast_visitor import ASTVisitor
from git_analysts.indexer.grammars import LanguageRegistry
from git_analysts.indexer.models import CodeElement, ElementType, Location


@pytest.fixture(scope="session")
def registry():
    """Language registry loaded from the bundled languages.json."""
    return LanguageRegistry()


@pytest.fixture(scope="session")
def visitor(registry):
    """AST visitor without import resolution."""
    return ASTVisitor(registry)


@pytest.fixture
def context():
    return AnalysisContext()


@pytest.fixture
def write_repo(tmp_path):
    """Write a {relative path: content} map under tmp_path and return the root."""

    def _write(files):
        for rel_path, content in files.items():
            path = tmp_path / rel_path
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return tmp_path

    return _write


def make_element(element_id, name, element_type, file_path, line=1):
    """Build a CodeElement with a one-line location."""
    return CodeElement(
        id=element_id,
        name=name,
        type=ElementType(element_type),
        file_path=file_path,
        location=Location(start_line=line, start_column=0, end_line=line, end_column=10),
    )


def find_elements(result, name, element_type=None):
    return [
        element
        for element in result.elements
        if element.name == name and (element_type is None or element.type == element_type)
    ]
