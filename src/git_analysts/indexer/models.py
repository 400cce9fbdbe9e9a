"""Data models for code analysis."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class ElementType(str, Enum):
    """Kinds of code entities discovered during traversal."""

    CLASS = "class"
    INTERFACE = "interface"
    FUNCTION = "function"
    METHOD = "method"
    VARIABLE = "variable"
    PROPERTY = "property"
    TYPE = "type"
    ENUM = "enum"
    IMPORT = "import"


class RelationType(str, Enum):
    """Kinds of directed edges between code entities."""

    CONTAINS = "contains"
    CALLS = "calls"
    INHERITS = "inherits"
    IMPLEMENTS = "implements"
    IMPORTS = "imports"
    REFERENCES = "references"


@dataclass(frozen=True)
class Location:
    """Span of an entity within its file (1-based lines, 0-based columns)."""

    start_line: int
    start_column: int
    end_line: int
    end_column: int


@dataclass(frozen=True)
class CodeElement:
    """A code entity discovered in a single file."""

    id: str  # Blake3 hash, unique within a run
    name: str  # declared identifier, "" for anonymous constructs
    type: ElementType
    file_path: str  # repo-relative posix path
    location: Location
    implementation: str = ""  # verbatim source of the declaration


@dataclass(frozen=True)
class Relation:
    """Directed edge between two code elements, referenced by id."""

    source_id: str
    target_id: str
    type: RelationType


@dataclass(frozen=True)
class NamedReference:
    """A relation whose target is still only known by name."""

    source_id: str
    target_name: str
    type: RelationType
    file_path: str
    module_path: Optional[str] = None  # resolved file for import bindings
    imported_name: Optional[str] = None  # exported name inside module_path


@dataclass(frozen=True)
class ImportBinding:
    """A local name bound by an import statement."""

    local_name: str
    imported_name: str
    module_specifier: str
    module_path: Optional[str]  # None when the specifier is external


@dataclass
class FileAnalysisResult:
    """Outcome of visiting a single file."""

    file_path: str
    success: bool
    elements: List[CodeElement] = field(default_factory=list)
    relations: List[Relation] = field(default_factory=list)
    references: List[NamedReference] = field(default_factory=list)
    import_bindings: Dict[str, ImportBinding] = field(default_factory=dict)
    error: Optional[str] = None

    @classmethod
    def failure(cls, file_path: str, error: str) -> "FileAnalysisResult":
        return cls(file_path=file_path, success=False, error=error)


@dataclass
class DependencyEntry:
    """A file and the repository files it imports, in first-resolution order."""

    file_path: str
    dependencies: List[str] = field(default_factory=list)
