"""Language-specific relationship extractors using strategy pattern.

Each language has its own extractor class that knows how to read names,
call targets, import bindings and inheritance clauses out of AST nodes.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Set

logger = logging.getLogger(__name__)

IDENTIFIER_TYPES = {
    "identifier",
    "type_identifier",
    "property_identifier",
    "private_property_identifier",
    "shorthand_property_identifier",
}


def node_text(node: Any) -> str:
    return node.text.decode("utf-8", errors="replace")


class RelationshipExtractor(ABC):
    """Base class for language-specific relationship extraction."""

    # Clauses whose type names become inherits/implements, not references
    heritage_node_types: Set[str] = set()

    def __init__(self, language: str):
        self.language = language

    def extract_declared_name(self, node: Any, name_field: Optional[str]) -> str:
        """Extract the declared identifier of an entity node.

        Args:
            node: Tree-sitter node
            name_field: Field holding the name; dotted paths walk nested fields

        Returns:
            Name string, "" when the node has no identifiable name
        """
        if not name_field:
            return ""

        current = node
        for field in name_field.split("."):
            current = current.child_by_field_name(field)
            if current is None:
                return ""

        if current.type in IDENTIFIER_TYPES:
            return node_text(current)
        return ""

    def extract_call_target_name(self, call_node: Any, callee_field: str) -> Optional[str]:
        """Extract the function/method/constructor name being called."""
        func_node = call_node.child_by_field_name(callee_field)
        if func_node is None:
            return None
        return self.extract_type_name(func_node)

    def extract_type_name(self, node: Any) -> Optional[str]:
        """Reduce a (possibly qualified or generic) type or callee node to its last name."""
        if node.type in IDENTIFIER_TYPES:
            return node_text(node)
        return None

    @abstractmethod
    def extract_import_info(self, import_node: Any) -> Optional[Dict[str, Any]]:
        """Extract the imported module and the local bindings an import creates.

        Returns:
            {"module": str, "bindings": [(local_name, imported_name), ...]} or None
        """
        pass

    @abstractmethod
    def extract_inheritance_info(self, class_node: Any) -> Dict[str, List[str]]:
        """Extract base classes and interfaces from a class or interface node."""
        pass


class JavaScriptExtractor(RelationshipExtractor):
    """JavaScript-specific relationship extraction."""

    heritage_node_types = {"class_heritage"}

    def __init__(self):
        super().__init__("javascript")

    def extract_type_name(self, node: Any) -> Optional[str]:
        if node.type == "member_expression":
            prop_node = node.child_by_field_name("property")
            return node_text(prop_node) if prop_node is not None else None
        return super().extract_type_name(node)

    def extract_import_info(self, import_node: Any) -> Optional[Dict[str, Any]]:
        """Extract import information from JavaScript import node."""
        # import ... from "module"
        source_node = import_node.child_by_field_name("source")
        if source_node is None:
            return None

        module_name = node_text(source_node).strip("\"'`")
        bindings = []

        for clause in import_node.named_children:
            if clause.type != "import_clause":
                continue
            for child in clause.named_children:
                if child.type == "identifier":
                    # Default import, looked up under its local name
                    local = node_text(child)
                    bindings.append((local, local))
                elif child.type == "named_imports":
                    for spec in child.named_children:
                        if spec.type != "import_specifier":
                            continue
                        name_node = spec.child_by_field_name("name")
                        alias_node = spec.child_by_field_name("alias")
                        if name_node is None:
                            continue
                        imported = node_text(name_node).strip("\"'")
                        local = node_text(alias_node) if alias_node is not None else imported
                        bindings.append((local, imported))

        return {"module": module_name, "bindings": bindings}

    def extract_inheritance_info(self, class_node: Any) -> Dict[str, List[str]]:
        """Extract base classes from JavaScript class node."""
        info = {"extends": [], "implements": []}
        # class ClassName extends BaseClass
        for child in class_node.children:
            if child.type != "class_heritage":
                continue
            for expr in child.named_children:
                name = self.extract_type_name(expr)
                if name:
                    info["extends"].append(name)
        return info


class TypeScriptExtractor(JavaScriptExtractor):
    """TypeScript-specific relationship extraction (extends JavaScript)."""

    heritage_node_types = {
        "class_heritage",
        "extends_clause",
        "implements_clause",
        "extends_type_clause",
    }

    def __init__(self, language: str = "typescript"):
        super().__init__()
        self.language = language

    def extract_type_name(self, node: Any) -> Optional[str]:
        if node.type == "generic_type":
            name_node = node.child_by_field_name("name")
            return self.extract_type_name(name_node) if name_node is not None else None
        if node.type == "nested_type_identifier":
            name_node = node.child_by_field_name("name")
            return node_text(name_node) if name_node is not None else None
        return super().extract_type_name(node)

    def extract_inheritance_info(self, class_node: Any) -> Dict[str, List[str]]:
        """Extract base classes and interfaces from TypeScript class/interface node."""
        info = {"extends": [], "implements": []}

        for child in class_node.children:
            if child.type == "class_heritage":
                # class ClassName extends BaseClass implements Interface
                for clause in child.named_children:
                    if clause.type == "extends_clause":
                        values = clause.children_by_field_name("value") or [
                            c for c in clause.named_children if c.type != "type_arguments"
                        ]
                        for value in values:
                            name = self.extract_type_name(value)
                            if name:
                                info["extends"].append(name)
                    elif clause.type == "implements_clause":
                        for type_node in clause.named_children:
                            name = self.extract_type_name(type_node)
                            if name:
                                info["implements"].append(name)
            elif child.type == "extends_type_clause":
                # interface Name extends Other, Another
                for type_node in child.named_children:
                    name = self.extract_type_name(type_node)
                    if name:
                        info["extends"].append(name)

        return info


class PythonExtractor(RelationshipExtractor):
    """Python-specific relationship extraction."""

    def __init__(self):
        super().__init__("python")

    def extract_type_name(self, node: Any) -> Optional[str]:
        if node.type == "attribute":
            attr_node = node.child_by_field_name("attribute")
            return node_text(attr_node) if attr_node is not None else None
        return super().extract_type_name(node)

    def extract_import_info(self, import_node: Any) -> Optional[Dict[str, Any]]:
        """Extract import information from Python import node."""
        names = import_node.children_by_field_name("name")

        if import_node.type == "import_statement":
            # import module [as alias]; binds a module, not an entity
            if not names:
                return None
            first = names[0]
            if first.type == "aliased_import":
                first = first.child_by_field_name("name")
            return {"module": node_text(first), "bindings": []}

        # from module import name [as alias]
        module_node = import_node.child_by_field_name("module_name")
        if module_node is None:
            return None

        bindings = []
        for name_node in names:
            if name_node.type == "aliased_import":
                imported_node = name_node.child_by_field_name("name")
                alias_node = name_node.child_by_field_name("alias")
                imported = node_text(imported_node)
                local = node_text(alias_node) if alias_node is not None else imported
            else:
                imported = local = node_text(name_node)
            bindings.append((local, imported.split(".")[-1]))

        return {"module": node_text(module_node), "bindings": bindings}

    def extract_inheritance_info(self, class_node: Any) -> Dict[str, List[str]]:
        """Extract base classes from Python class node."""
        info = {"extends": [], "implements": []}
        # class ClassName(BaseClass, module.Mixin, metaclass=Meta):
        bases_node = class_node.child_by_field_name("superclasses")
        if bases_node is not None:
            for child in bases_node.named_children:
                name = self.extract_type_name(child)
                if name:
                    info["extends"].append(name)
        return info


class ExtractorRegistry:
    """Registry for language-specific relationship extractors."""

    _extractors: Dict[str, RelationshipExtractor] = {
        "javascript": JavaScriptExtractor(),
        "typescript": TypeScriptExtractor(),
        "tsx": TypeScriptExtractor("tsx"),
        "python": PythonExtractor(),
    }

    @classmethod
    def get_extractor(cls, language: str) -> Optional[RelationshipExtractor]:
        """Get the relationship extractor for a language.

        Args:
            language: Programming language name

        Returns:
            RelationshipExtractor instance or None if not supported
        """
        return cls._extractors.get(language)
