"""AST traversal that turns one source file into code entities and relations."""

import logging
import posixpath
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

import blake3
import tree_sitter_javascript as tsjavascript
import tree_sitter_python as tspython
import tree_sitter_typescript as tstypescript
from tree_sitter import Language, Parser

from .analysis_context import AnalysisContext
from .grammars import LanguageConfig, LanguageRegistry, NodeShape, get_language_registry
from .models import (
    CodeElement,
    ElementType,
    FileAnalysisResult,
    ImportBinding,
    Location,
    NamedReference,
    Relation,
    RelationType,
)
from .module_resolver import ModuleResolver, python_submodule
from .relationship_extractors import ExtractorRegistry, RelationshipExtractor, node_text

logger = logging.getLogger(__name__)

ENTITY_SHAPES = {
    NodeShape.CLASS,
    NodeShape.INTERFACE,
    NodeShape.FUNCTION,
    NodeShape.METHOD,
    NodeShape.VARIABLE,
    NodeShape.PROPERTY,
    NodeShape.TYPE,
    NodeShape.ENUM,
}

# Initializers that turn a variable or field into a function/method
FUNCTION_VALUE_TYPES = {
    "arrow_function",
    "function",
    "function_expression",
    "generator_function",
    "lambda",
}


class _FileVisit:
    """Isolated accumulator for a single file's traversal."""

    def __init__(
        self,
        file_path: str,
        source_bytes: bytes,
        lang_config: LanguageConfig,
        extractor: RelationshipExtractor,
        id_prefix: str,
    ):
        self.file_path = file_path
        self.source_bytes = source_bytes
        self.lang_config = lang_config
        self.extractor = extractor
        self.id_prefix = id_prefix
        self.scope: List[CodeElement] = []
        self.elements: List[CodeElement] = []
        self.relations: List[Relation] = []
        self.references: List[NamedReference] = []
        self.import_bindings: Dict[str, ImportBinding] = {}
        self._sequence = 0
        self._seen_references: Set[Tuple[str, str, RelationType]] = set()

    @property
    def enclosing(self) -> Optional[CodeElement]:
        return self.scope[-1] if self.scope else None

    def next_id(self, node: Any) -> str:
        """Fresh element id; the run id and file ordinal keep it unique per run."""
        self._sequence += 1
        hash_input = (
            f"{self.id_prefix}:{self._sequence}:{self.file_path}:"
            f"{node.type}:{node.start_byte}:{node.end_byte}"
        )
        return blake3.blake3(hash_input.encode()).hexdigest()[:16]

    def add_reference(
        self,
        source: CodeElement,
        target_name: str,
        relation_type: RelationType,
        module_path: Optional[str] = None,
        imported_name: Optional[str] = None,
    ) -> None:
        key = (source.id, target_name, relation_type)
        if key in self._seen_references:
            return
        self._seen_references.add(key)
        self.references.append(
            NamedReference(
                source_id=source.id,
                target_name=target_name,
                type=relation_type,
                file_path=self.file_path,
                module_path=module_path,
                imported_name=imported_name,
            )
        )

    def result(self) -> FileAnalysisResult:
        return FileAnalysisResult(
            file_path=self.file_path,
            success=True,
            elements=self.elements,
            relations=self.relations,
            references=self.references,
            import_bindings=self.import_bindings,
        )


class ASTVisitor:
    """Extract code entities and relations from files using tree-sitter."""

    # Language module mapping
    LANGUAGE_MODULES = {
        "javascript": tsjavascript,
        "typescript": tstypescript,
        "tsx": tstypescript,
        "python": tspython,
    }

    # Modules that use non-standard language function names
    LANGUAGE_FUNCTION_OVERRIDES = {
        "typescript": "language_typescript",
        "tsx": "language_tsx",
    }

    def __init__(
        self,
        registry: Optional[LanguageRegistry] = None,
        resolver: Optional[ModuleResolver] = None,
        strict_parse: bool = True,
    ):
        """Initialize AST visitor.

        Args:
            registry: Language registry (defaults to the global one)
            resolver: Module resolver used to locate the files imports point at
            strict_parse: Treat files with syntax errors as failed
        """
        self.registry = registry or get_language_registry()
        self.resolver = resolver
        self.strict_parse = strict_parse
        self.languages: Dict[str, Language] = {}
        self._init_languages()

        self._handlers: Dict[NodeShape, Callable[[Any, _FileVisit], Optional[CodeElement]]] = {
            NodeShape.CLASS: self._visit_class,
            NodeShape.INTERFACE: self._visit_interface,
            NodeShape.FUNCTION: self._visit_function,
            NodeShape.METHOD: self._visit_method,
            NodeShape.VARIABLE: self._visit_variable,
            NodeShape.PROPERTY: self._visit_property,
            NodeShape.TYPE: self._visit_type,
            NodeShape.ENUM: self._visit_enum,
            NodeShape.IMPORT: self._visit_import,
            NodeShape.CALL: self._visit_call,
            NodeShape.REFERENCE: self._visit_reference,
        }
        missing = [shape.value for shape in NodeShape if shape not in self._handlers]
        if missing:
            raise RuntimeError(f"No visitor handler for node shapes: {missing}")

    def _init_languages(self) -> None:
        """Initialize tree-sitter languages."""
        for lang_name in self.registry.get_supported_languages():
            lang_config = self.registry.get_language_config(lang_name)
            if not lang_config or lang_config.is_template_wrapper:
                continue

            ts_lang_name = lang_config.tree_sitter_language

            try:
                module = self.LANGUAGE_MODULES.get(ts_lang_name)
                if not module:
                    logger.warning(f"No module found for language: {ts_lang_name}")
                    continue

                lang_func_name = self.LANGUAGE_FUNCTION_OVERRIDES.get(ts_lang_name, "language")
                lang_func = getattr(module, lang_func_name, None)

                if not lang_func:
                    logger.warning(f"Module {ts_lang_name} has no function '{lang_func_name}'")
                    continue

                self.languages[lang_name] = Language(lang_func())
                logger.debug(f"Initialized grammar for {lang_name}")

            except Exception as e:
                logger.error(f"Error initializing language {lang_name}: {e}")

    def _get_parser(self, language: str) -> Parser:
        # Parsers are not shared so files can be visited from worker threads
        parser = Parser()
        parser.language = self.languages[language]
        return parser

    def analyze_file(
        self,
        file_path: str,
        source_code: str,
        context: AnalysisContext,
        file_ordinal: Optional[int] = None,
    ) -> FileAnalysisResult:
        """Parse a file and extract its entities, relations and named references.

        The context is only read (run id, file ordinal); the returned result is
        merged by the caller.

        Args:
            file_path: Repo-relative path of the file
            source_code: File content
            context: Run the file belongs to
            file_ordinal: Pre-claimed ordinal (claimed from the context if omitted)

        Returns:
            Success result with the file's findings, or a failure result

        Raises:
            ValueError: If file_path is empty
        """
        if not file_path:
            raise ValueError("file_path is required")

        lang_config = self.registry.get_config_for_file(file_path)
        if not lang_config:
            logger.warning(f"Unsupported file type: {file_path}")
            return FileAnalysisResult.failure(file_path, "Unsupported file type")

        language = lang_config.name
        source = source_code
        if lang_config.is_template_wrapper:
            language, source = lang_config.unwrap_template(source_code)
            lang_config = self.registry.get_language_config(language)
            if not lang_config:
                return FileAnalysisResult.failure(file_path, f"Unsupported script language: {language}")

        if language not in self.languages:
            logger.warning(f"Parser not available for {language}")
            return FileAnalysisResult.failure(file_path, f"Parser not available for {language}")

        extractor = ExtractorRegistry.get_extractor(language)
        if not extractor:
            logger.warning(f"No relationship extractor for language: {language}")
            return FileAnalysisResult.failure(file_path, f"No extractor for {language}")

        if file_ordinal is None:
            file_ordinal = context.claim_file_ordinal()

        try:
            source_bytes = source.encode("utf-8")
            tree = self._get_parser(language).parse(source_bytes)
            root_node = tree.root_node

            if root_node.has_error and self.strict_parse:
                logger.warning(f"Parse errors in {file_path}, skipping file")
                return FileAnalysisResult.failure(file_path, "Syntax errors in file")

            visit = _FileVisit(
                file_path=file_path,
                source_bytes=source_bytes,
                lang_config=lang_config,
                extractor=extractor,
                id_prefix=f"{context.run_id}:{file_ordinal}",
            )
            self._traverse(root_node, visit)

            logger.info(
                f"Extracted {len(visit.elements)} elements and "
                f"{len(visit.references)} references from {file_path}"
            )
            return visit.result()

        except Exception as e:
            logger.error(f"Error analyzing {file_path}: {e}")
            return FileAnalysisResult.failure(file_path, str(e))

    def _traverse(self, root_node: Any, visit: _FileVisit) -> None:
        """Depth-first walk maintaining the enclosing-entity scope stack."""
        stack: List[Tuple[Any, bool]] = [(root_node, False)]

        while stack:
            node, leaving = stack.pop()
            if leaving:
                visit.scope.pop()
                continue

            parent = node.parent
            export_parent = parent.type if parent is not None and node.is_named else None
            shape = visit.lang_config.get_shape(node.type, export_parent)
            if shape is not None:
                element = self._handlers[shape](node, visit)
                if element is not None:
                    visit.scope.append(element)
                    stack.append((node, True))

            for child in reversed(node.children):
                stack.append((child, False))

    # Entity handlers

    def _create_element(
        self, node: Any, visit: _FileVisit, element_type: ElementType, name: str
    ) -> CodeElement:
        """Record an entity and link it to the entity enclosing it."""
        element = CodeElement(
            id=visit.next_id(node),
            name=name,
            type=element_type,
            file_path=visit.file_path,
            location=Location(
                start_line=node.start_point[0] + 1,  # Tree-sitter uses 0-based rows
                start_column=node.start_point[1],
                end_line=node.end_point[0] + 1,
                end_column=node.end_point[1],
            ),
            implementation=visit.source_bytes[node.start_byte : node.end_byte].decode(
                "utf-8", errors="replace"
            ),
        )
        visit.elements.append(element)

        parent = visit.enclosing
        if parent is not None:
            visit.relations.append(Relation(parent.id, element.id, RelationType.CONTAINS))

        logger.debug(
            f"Extracted {element_type.value} '{name}' from {visit.file_path}:"
            f"{element.location.start_line}"
        )
        return element

    def _declared_name(self, node: Any, visit: _FileVisit) -> str:
        return visit.extractor.extract_declared_name(
            node, visit.lang_config.get_name_field(node.type)
        )

    def _visit_class(self, node: Any, visit: _FileVisit) -> CodeElement:
        element = self._create_element(node, visit, ElementType.CLASS, self._declared_name(node, visit))
        self._add_heritage(node, element, visit)
        return element

    def _visit_interface(self, node: Any, visit: _FileVisit) -> CodeElement:
        element = self._create_element(
            node, visit, ElementType.INTERFACE, self._declared_name(node, visit)
        )
        self._add_heritage(node, element, visit)
        return element

    def _add_heritage(self, node: Any, element: CodeElement, visit: _FileVisit) -> None:
        inheritance = visit.extractor.extract_inheritance_info(node)
        for base in inheritance.get("extends", []):
            visit.add_reference(element, base, RelationType.INHERITS)
        for interface in inheritance.get("implements", []):
            visit.add_reference(element, interface, RelationType.IMPLEMENTS)

    def _visit_function(self, node: Any, visit: _FileVisit) -> CodeElement:
        # Python defs directly inside a class body are methods
        enclosing = visit.enclosing
        if enclosing is not None and enclosing.type == ElementType.CLASS:
            element_type = ElementType.METHOD
        else:
            element_type = ElementType.FUNCTION
        return self._create_element(node, visit, element_type, self._declared_name(node, visit))

    def _visit_method(self, node: Any, visit: _FileVisit) -> CodeElement:
        return self._create_element(node, visit, ElementType.METHOD, self._declared_name(node, visit))

    def _visit_variable(self, node: Any, visit: _FileVisit) -> Optional[CodeElement]:
        value = node.child_by_field_name("value")
        if visit.lang_config.resolution == "python":
            # Only plain name bindings declare something; "self.x = 1" does not
            left = node.child_by_field_name("left")
            if left is None or left.type != "identifier":
                return None
            value = node.child_by_field_name("right")

        if value is not None and value.type in FUNCTION_VALUE_TYPES:
            element_type = ElementType.FUNCTION
        else:
            element_type = ElementType.VARIABLE
        return self._create_element(node, visit, element_type, self._declared_name(node, visit))

    def _visit_property(self, node: Any, visit: _FileVisit) -> CodeElement:
        value = node.child_by_field_name("value")
        if value is not None and value.type in FUNCTION_VALUE_TYPES:
            element_type = ElementType.METHOD
        else:
            element_type = ElementType.PROPERTY
        return self._create_element(node, visit, element_type, self._declared_name(node, visit))

    def _visit_type(self, node: Any, visit: _FileVisit) -> CodeElement:
        return self._create_element(node, visit, ElementType.TYPE, self._declared_name(node, visit))

    def _visit_enum(self, node: Any, visit: _FileVisit) -> CodeElement:
        return self._create_element(node, visit, ElementType.ENUM, self._declared_name(node, visit))

    def _visit_import(self, node: Any, visit: _FileVisit) -> None:
        info = visit.extractor.extract_import_info(node)
        if not info:
            return None

        module = info["module"]
        element = self._create_element(node, visit, ElementType.IMPORT, module)
        module_path = self._resolve_module(module, visit)

        for local_name, imported_name in info.get("bindings", []):
            binding_path = self._resolve_submodule(module, imported_name, visit) or module_path
            visit.import_bindings[local_name] = ImportBinding(
                local_name=local_name,
                imported_name=imported_name,
                module_specifier=module,
                module_path=binding_path,
            )
            visit.add_reference(
                element,
                local_name,
                RelationType.IMPORTS,
                module_path=binding_path,
                imported_name=imported_name,
            )
        return None

    def _resolve_module(self, module: str, visit: _FileVisit) -> Optional[str]:
        if self.resolver is None:
            return None
        importing_dir = posixpath.dirname(visit.file_path)
        if visit.lang_config.resolution == "python":
            return self.resolver.resolve_python_module(module, importing_dir)
        return self.resolver.resolve(module, importing_dir)

    def _resolve_submodule(self, module: str, name: str, visit: _FileVisit) -> Optional[str]:
        """File of a Python submodule imported by name ("from . import utils")."""
        if self.resolver is None or visit.lang_config.resolution != "python":
            return None
        return self.resolver.resolve_python_module(
            python_submodule(module, name), posixpath.dirname(visit.file_path)
        )

    # Reference handlers

    def _visit_call(self, node: Any, visit: _FileVisit) -> None:
        source = visit.enclosing
        if source is None:
            logger.debug(f"Skipping top-level call in {visit.file_path}:{node.start_point[0] + 1}")
            return None

        callee_field = visit.lang_config.get_name_field(node.type) or "function"
        callee = visit.extractor.extract_call_target_name(node, callee_field)
        if callee:
            visit.add_reference(source, callee, RelationType.CALLS)
        return None

    def _visit_reference(self, node: Any, visit: _FileVisit) -> None:
        source = visit.enclosing
        if source is None or self._is_declaration_name(node, visit):
            return None
        if self._in_heritage_clause(node, visit):
            return None

        visit.add_reference(source, node_text(node), RelationType.REFERENCES)
        return None

    def _is_declaration_name(self, node: Any, visit: _FileVisit) -> bool:
        parent = node.parent
        if parent is None or visit.lang_config.get_shape(parent.type) not in ENTITY_SHAPES:
            return False
        name_field = visit.lang_config.get_name_field(parent.type)
        name_node = parent.child_by_field_name(name_field) if name_field else None
        return name_node is not None and (
            name_node.start_byte,
            name_node.end_byte,
        ) == (node.start_byte, node.end_byte)

    def _in_heritage_clause(self, node: Any, visit: _FileVisit) -> bool:
        current = node.parent
        while current is not None:
            if current.type in visit.extractor.heritage_node_types:
                return True
            if visit.lang_config.get_shape(current.type) in ENTITY_SHAPES:
                return False
            current = current.parent
        return False
