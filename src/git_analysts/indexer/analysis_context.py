"""Per-run analysis state and name-to-entity reference resolution."""

import itertools
import logging
import uuid
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .models import (
    CodeElement,
    ElementType,
    FileAnalysisResult,
    ImportBinding,
    NamedReference,
    Relation,
    RelationType,
)

logger = logging.getLogger(__name__)

TYPE_TARGETS = {ElementType.CLASS, ElementType.INTERFACE, ElementType.TYPE, ElementType.ENUM}

ELIGIBLE_TARGETS: Dict[RelationType, Set[ElementType]] = {
    RelationType.CALLS: {
        ElementType.FUNCTION,
        ElementType.METHOD,
        ElementType.CLASS,
        ElementType.VARIABLE,
    },
    RelationType.INHERITS: TYPE_TARGETS,
    RelationType.IMPLEMENTS: TYPE_TARGETS,
    RelationType.REFERENCES: TYPE_TARGETS,
    RelationType.IMPORTS: set(ElementType) - {ElementType.IMPORT},
    RelationType.CONTAINS: set(ElementType) - {ElementType.IMPORT},
}


class AnalysisContext:
    """Entities, relations and unresolved references accumulated by one run.

    A context is owned by a single run. Starting over means creating a new
    context; nothing is shared between runs.
    """

    def __init__(self):
        self.run_id = uuid.uuid4().hex
        self.elements: List[CodeElement] = []
        self.relations: List[Relation] = []
        self.references: List[NamedReference] = []
        self.import_bindings: Dict[str, Dict[str, ImportBinding]] = {}
        self.analyzed_files: List[str] = []
        self.failed_files: Dict[str, str] = {}
        self._file_ordinals = itertools.count()

    def claim_file_ordinal(self) -> int:
        """Reserve a run-unique number for the next file visit (used in element ids)."""
        return next(self._file_ordinals)

    def merge(self, result: FileAnalysisResult) -> None:
        """Fold one file's result into the run.

        Failed results contribute no entities, relations or references.
        """
        if not result.success:
            self.failed_files[result.file_path] = result.error or "unknown error"
            return

        self.elements.extend(result.elements)
        self.relations.extend(result.relations)
        self.references.extend(result.references)
        self.import_bindings.setdefault(result.file_path, {}).update(result.import_bindings)
        self.analyzed_files.append(result.file_path)

    def resolve_references(self) -> List[Relation]:
        """Turn named references into id-based relations.

        A reference resolves to the first eligible element found by, in order:

        1. the imported module, for references created from an import binding;
        2. the reference's own file;
        3. the module an import in the reference's file binds the name to;
        4. any analysed file, in discovery order.

        Import elements are never targets. Unresolved references are dropped.

        Returns:
            Resolved relations, in reference discovery order
        """
        by_file_and_name: Dict[Tuple[str, str], List[CodeElement]] = {}
        by_name: Dict[str, List[CodeElement]] = {}
        for element in self.elements:
            if element.type == ElementType.IMPORT or not element.name:
                continue
            by_file_and_name.setdefault((element.file_path, element.name), []).append(element)
            by_name.setdefault(element.name, []).append(element)

        resolved: List[Relation] = []
        seen: Set[Tuple[str, str, RelationType]] = set()
        unresolved = 0

        for reference in self.references:
            target = self._resolve_reference(reference, by_file_and_name, by_name)
            if target is None:
                unresolved += 1
                logger.debug(
                    f"Unresolved {reference.type.value} reference to '{reference.target_name}' "
                    f"in {reference.file_path}"
                )
                continue

            key = (reference.source_id, target.id, reference.type)
            if key in seen:
                continue
            seen.add(key)
            resolved.append(Relation(reference.source_id, target.id, reference.type))

        logger.info(
            f"Resolved {len(resolved)} of {len(self.references)} references "
            f"({unresolved} unresolved)"
        )
        return resolved

    def all_relations(self) -> List[Relation]:
        """Structural relations followed by resolved references."""
        return self.relations + self.resolve_references()

    def _resolve_reference(
        self,
        reference: NamedReference,
        by_file_and_name: Dict[Tuple[str, str], List[CodeElement]],
        by_name: Dict[str, List[CodeElement]],
    ) -> Optional[CodeElement]:
        eligible = ELIGIBLE_TARGETS.get(reference.type, set(ElementType))

        if reference.module_path:
            name = reference.imported_name or reference.target_name
            target = _first_eligible(by_file_and_name.get((reference.module_path, name), []), eligible)
            if target is not None:
                return target

        target = _first_eligible(
            by_file_and_name.get((reference.file_path, reference.target_name), []), eligible
        )
        if target is not None:
            return target

        binding = self.import_bindings.get(reference.file_path, {}).get(reference.target_name)
        if binding is not None and binding.module_path:
            target = _first_eligible(
                by_file_and_name.get((binding.module_path, binding.imported_name), []), eligible
            )
            if target is not None:
                return target

        return _first_eligible(by_name.get(reference.target_name, []), eligible)


def _first_eligible(
    candidates: Iterable[CodeElement], eligible: Set[ElementType]
) -> Optional[CodeElement]:
    for candidate in candidates:
        if candidate.type in eligible:
            return candidate
    return None
