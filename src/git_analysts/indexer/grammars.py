"""Language grammar configuration and detection for tree-sitter."""

import json
import logging
import re
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Pattern, Tuple

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "languages.json"

SCRIPT_BLOCK_PATTERN = re.compile(r"<script\b([^>]*)>([\s\S]*?)</script\s*>", re.IGNORECASE)
SCRIPT_LANG_PATTERN = re.compile(r"\blang\s*=\s*[\"']?(\w+)", re.IGNORECASE)


class NodeShape(str, Enum):
    """Closed set of syntactic shapes the visitor knows how to handle."""

    CLASS = "class"
    INTERFACE = "interface"
    FUNCTION = "function"
    METHOD = "method"
    VARIABLE = "variable"
    PROPERTY = "property"
    TYPE = "type"
    ENUM = "enum"
    IMPORT = "import"
    CALL = "call"
    REFERENCE = "reference"


class LanguageConfig:
    """Configuration for a programming language."""

    def __init__(
        self,
        name: str,
        extensions: List[str],
        tree_sitter_language: Optional[str],
        node_shapes: Dict[str, Dict],
        comment_patterns: Dict[str, List],
        import_patterns: List[str],
        resolution: str = "javascript",
        script_languages: Optional[Dict[str, str]] = None,
        default_script_language: Optional[str] = None,
        export_default_shapes: Optional[Dict[str, Dict]] = None,
    ):
        """Initialize language configuration.

        Args:
            name: Language name (typescript, javascript, etc.)
            extensions: List of file extensions
            tree_sitter_language: Tree-sitter language identifier, None for template wrappers
            node_shapes: Mapping of AST node types to their shape and name field
            comment_patterns: Line comment prefixes and block comment delimiters
            import_patterns: Regexes whose first group captures an import specifier
            resolution: Module resolution strategy ("javascript" or "python")
            script_languages: For template wrappers, <script lang> value to language name
            default_script_language: For template wrappers, language of a bare <script>
            export_default_shapes: Node types that only declare an entity directly under
                an export_statement (anonymous "export default class {}")
        """
        self.name = name
        self.extensions = extensions
        self.tree_sitter_language = tree_sitter_language
        self.node_shapes = node_shapes
        # Fails fast on shapes the visitor has no handler for
        self._shapes: Dict[str, NodeShape] = {
            node_type: NodeShape(entry["shape"]) for node_type, entry in node_shapes.items()
        }
        self.export_default_shapes = export_default_shapes or {}
        self._export_default_shapes: Dict[str, NodeShape] = {
            node_type: NodeShape(entry["shape"])
            for node_type, entry in self.export_default_shapes.items()
        }
        self.comment_patterns = comment_patterns
        self.resolution = resolution
        self.script_languages = script_languages or {}
        self.default_script_language = default_script_language

        self.import_regexes: List[Pattern] = [
            re.compile(pattern, re.MULTILINE) for pattern in import_patterns
        ]
        self.block_comment_regexes: List[Pattern] = [
            re.compile(re.escape(start) + r"[\s\S]*?" + re.escape(end))
            for start, end in comment_patterns.get("block", [])
        ]
        self.line_comment_prefixes: Tuple[str, ...] = tuple(comment_patterns.get("line", []))

    @property
    def is_template_wrapper(self) -> bool:
        """True for files (e.g. .vue) whose code lives inside <script> blocks."""
        return self.tree_sitter_language is None

    def get_shape(self, node_type: str, parent_type: Optional[str] = None) -> Optional[NodeShape]:
        """Get the shape a node type maps to.

        Args:
            node_type: AST node type
            parent_type: Type of the parent node, enables default-export shapes

        Returns:
            NodeShape or None if the node type is not recognised
        """
        shape = self._shapes.get(node_type)
        if shape is None and parent_type == "export_statement":
            return self._export_default_shapes.get(node_type)
        return shape

    def get_name_field(self, node_type: str) -> Optional[str]:
        """Get the field name that contains the identifier for this node type.

        Args:
            node_type: AST node type

        Returns:
            Field name or None if no specific field
        """
        if node_type in self.node_shapes:
            return self.node_shapes[node_type].get("name_field")
        if node_type in self.export_default_shapes:
            return self.export_default_shapes[node_type].get("name_field")
        return None

    def unwrap_template(self, source_code: str) -> Tuple[str, str]:
        """Blank out everything outside <script> blocks.

        Characters outside the script bodies are replaced by spaces (newlines
        are kept) so line and column numbers still point into the original file.

        Args:
            source_code: Full template file content

        Returns:
            Tuple of (script language name, masked source)
        """
        language = self.default_script_language
        pieces = []
        last_end = 0

        for match in SCRIPT_BLOCK_PATTERN.finditer(source_code):
            lang_match = SCRIPT_LANG_PATTERN.search(match.group(1))
            if lang_match:
                language = self.script_languages.get(lang_match.group(1).lower(), language)

            body_start, body_end = match.span(2)
            pieces.append(_mask(source_code[last_end:body_start]))
            pieces.append(source_code[body_start:body_end])
            last_end = body_end

        pieces.append(_mask(source_code[last_end:]))
        return language, "".join(pieces)


def _mask(text: str) -> str:
    return re.sub(r"[^\n]", " ", text)


class LanguageRegistry:
    """Registry of language configurations."""

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize language registry.

        Args:
            config_path: Path to languages.json config file
        """
        if config_path is None:
            config_path = DEFAULT_CONFIG_PATH

        self.config_path = Path(config_path)
        self.languages: Dict[str, LanguageConfig] = {}
        self.extension_map: Dict[str, str] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load language configurations from JSON file."""
        try:
            with open(self.config_path, "r") as f:
                config_data = json.load(f)

            for lang_name, lang_config in config_data.items():
                language = LanguageConfig(
                    name=lang_name,
                    extensions=lang_config["extensions"],
                    tree_sitter_language=lang_config["tree_sitter_language"],
                    node_shapes=lang_config["node_shapes"],
                    comment_patterns=lang_config["comment_patterns"],
                    import_patterns=lang_config["import_patterns"],
                    resolution=lang_config.get("resolution", "javascript"),
                    script_languages=lang_config.get("script_languages"),
                    default_script_language=lang_config.get("default_script_language"),
                    export_default_shapes=lang_config.get("export_default_shapes"),
                )
                self.languages[lang_name] = language

                # Build extension to language mapping
                for ext in language.extensions:
                    self.extension_map[ext] = lang_name

            logger.info(f"Loaded {len(self.languages)} language configurations")

        except Exception as e:
            logger.error(f"Error loading language config from {self.config_path}: {e}")
            raise

    def detect_language(self, file_path: str) -> Optional[str]:
        """Detect programming language from file extension.

        Args:
            file_path: Path to the file

        Returns:
            Language name or None if not recognized
        """
        extension = Path(file_path).suffix.lower()

        if extension in self.extension_map:
            return self.extension_map[extension]

        logger.debug(f"Unknown file extension: {extension}")
        return None

    def get_language_config(self, language: str) -> Optional[LanguageConfig]:
        """Get configuration for a specific language."""
        return self.languages.get(language)

    def get_config_for_file(self, file_path: str) -> Optional[LanguageConfig]:
        """Get the language configuration matching a file's extension."""
        language = self.detect_language(file_path)
        if language is None:
            return None
        return self.languages.get(language)

    def get_supported_languages(self) -> List[str]:
        """Get list of supported language names."""
        return list(self.languages.keys())

    def get_supported_extensions(self) -> List[str]:
        """Get list of all supported file extensions."""
        return list(self.extension_map.keys())

    def is_supported_file(self, file_path: str) -> bool:
        """Check if a file is supported for parsing."""
        return self.detect_language(file_path) is not None


# Global registry instance
_registry: Optional[LanguageRegistry] = None


def get_language_registry(config_path: Optional[Path] = None) -> LanguageRegistry:
    """Get the global language registry instance.

    Args:
        config_path: Path to config file (only used on first call)

    Returns:
        Language registry instance
    """
    global _registry
    if _registry is None:
        _registry = LanguageRegistry(config_path)
    return _registry
