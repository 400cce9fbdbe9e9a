"""Tests for per-file entity and relation extraction."""

import pytest

from conftest import find_elements
from git_analysts.indexer.ast_visitor import ASTVisitor
from git_analysts.indexer.models import ElementType, RelationType
from git_analysts.indexer.module_resolver import ModuleResolver
from git_analysts.indexer.relationship_extractors import ExtractorRegistry


def references_of(result, source, relation_type):
    return [
        ref.target_name
        for ref in result.references
        if ref.source_id == source.id and ref.type == relation_type
    ]


class TestTypeScriptEntities:
    """Entities, containment and locations in TypeScript files."""

    SOURCE = (
        "export class Greeter {\n"
        "  greeting: string = 'hi';\n"
        "  greet(name: string): string {\n"
        "    return helper(name);\n"
        "  }\n"
        "}\n"
        "\n"
        "function helper(x: string): string {\n"
        "  return x;\n"
        "}\n"
        "\n"
        "const add = (a: number, b: number) => a + b;\n"
        "let counter = 0;\n"
        "type Id = string;\n"
        "enum Color { Red, Green }\n"
    )

    @pytest.fixture
    def result(self, visitor, context):
        return visitor.analyze_file("src/greeter.ts", self.SOURCE, context)

    def test_success(self, result):
        assert result.success
        assert result.error is None

    def test_entity_types(self, result):
        assert find_elements(result, "Greeter", ElementType.CLASS)
        assert find_elements(result, "greeting", ElementType.PROPERTY)
        assert find_elements(result, "greet", ElementType.METHOD)
        assert find_elements(result, "helper", ElementType.FUNCTION)
        assert find_elements(result, "add", ElementType.FUNCTION)
        assert find_elements(result, "counter", ElementType.VARIABLE)
        assert find_elements(result, "Id", ElementType.TYPE)
        assert find_elements(result, "Color", ElementType.ENUM)

    def test_location_and_implementation(self, result):
        (helper,) = find_elements(result, "helper")

        assert helper.file_path == "src/greeter.ts"
        assert helper.location.start_line == 8
        assert helper.location.start_column == 0
        assert helper.location.end_line == 10
        assert helper.implementation.startswith("function helper(x: string)")
        assert helper.implementation.endswith("}")

    def test_contains(self, result):
        (greeter,) = find_elements(result, "Greeter")
        (greet,) = find_elements(result, "greet")
        (greeting,) = find_elements(result, "greeting")

        contains = {
            (rel.source_id, rel.target_id)
            for rel in result.relations
            if rel.type == RelationType.CONTAINS
        }
        assert (greeter.id, greet.id) in contains
        assert (greeter.id, greeting.id) in contains
        assert len(contains) == 2

    def test_call_reference_from_enclosing_method(self, result):
        (greet,) = find_elements(result, "greet")
        assert references_of(result, greet, RelationType.CALLS) == ["helper"]

    def test_unique_ids(self, result):
        ids = [element.id for element in result.elements]
        assert len(ids) == len(set(ids))

    def test_reanalysis_gives_fresh_ids(self, visitor, context, result):
        again = visitor.analyze_file("src/greeter.ts", self.SOURCE, context)

        assert len(again.elements) == len(result.elements)
        assert not {e.id for e in again.elements} & {e.id for e in result.elements}


class TestTypeScriptRelations:
    """Heritage clauses and type references."""

    SOURCE = (
        "interface Shape { area(): number; }\n"
        "interface Named extends Shape { name: string }\n"
        "class Base {}\n"
        "class Circle extends Base implements Shape, Named {\n"
        "  name = 'circle';\n"
        "  area(): number { return 1; }\n"
        "}\n"
        "type Id = string;\n"
        "function find(id: Id): Circle {\n"
        "  return new Circle();\n"
        "}\n"
    )

    @pytest.fixture
    def result(self, visitor, context):
        return visitor.analyze_file("shapes.ts", self.SOURCE, context)

    def test_class_heritage(self, result):
        (circle,) = find_elements(result, "Circle", ElementType.CLASS)

        assert references_of(result, circle, RelationType.INHERITS) == ["Base"]
        assert references_of(result, circle, RelationType.IMPLEMENTS) == ["Shape", "Named"]

    def test_heritage_names_are_not_type_references(self, result):
        (circle,) = find_elements(result, "Circle", ElementType.CLASS)
        assert references_of(result, circle, RelationType.REFERENCES) == []

    def test_interface_extends_is_inherits(self, result):
        (named,) = find_elements(result, "Named", ElementType.INTERFACE)

        assert references_of(result, named, RelationType.INHERITS) == ["Shape"]
        assert references_of(result, named, RelationType.IMPLEMENTS) == []

    def test_interface_members(self, result):
        (shape,) = find_elements(result, "Shape", ElementType.INTERFACE)
        area_methods = find_elements(result, "area", ElementType.METHOD)

        assert len(area_methods) == 2
        assert any(
            rel.source_id == shape.id and rel.type == RelationType.CONTAINS
            for rel in result.relations
        )

    def test_type_references_deduplicated(self, result):
        (find,) = find_elements(result, "find", ElementType.FUNCTION)

        assert references_of(result, find, RelationType.REFERENCES) == ["Id", "Circle"]
        assert references_of(result, find, RelationType.CALLS) == ["Circle"]

    def test_declaration_names_are_not_references(self, result):
        referenced = {
            ref.target_name for ref in result.references if ref.type == RelationType.REFERENCES
        }
        assert "Shape" not in referenced
        assert "Named" not in referenced


class TestImports:
    """Import elements, bindings and imports references."""

    def test_named_default_and_aliased_bindings(self, registry, context):
        resolver = ModuleResolver("/repo", known_files=["src/a.ts", "src/b.ts", "src/main.ts"])
        visitor = ASTVisitor(registry, resolver)
        source = (
            "import Default, { A, B as Bee } from './a';\n"
            "import * as ns from './b';\n"
            "import React from 'react';\n"
        )

        result = visitor.analyze_file("src/main.ts", source, context)

        imports = [e for e in result.elements if e.type == ElementType.IMPORT]
        assert [e.name for e in imports] == ["./a", "./b", "react"]

        bindings = result.import_bindings
        assert bindings["Default"].imported_name == "Default"
        assert bindings["A"].module_path == "src/a.ts"
        assert bindings["Bee"].imported_name == "B"
        assert bindings["React"].module_path is None
        assert "ns" not in bindings

        imports_refs = [ref for ref in result.references if ref.type == RelationType.IMPORTS]
        assert [(ref.target_name, ref.imported_name) for ref in imports_refs] == [
            ("Default", "Default"),
            ("A", "A"),
            ("Bee", "B"),
            ("React", "React"),
        ]
        assert imports_refs[0].source_id == imports[0].id
        assert imports_refs[0].module_path == "src/a.ts"

    def test_import_elements_are_not_scopes(self, visitor, context):
        result = visitor.analyze_file("x.ts", "import { a } from './a';\n", context)
        assert result.relations == []

    def test_python_submodule_bindings(self, registry, context):
        resolver = ModuleResolver(
            "/repo", known_files=["pkg/__init__.py", "pkg/a.py", "pkg/utils.py"]
        )
        visitor = ASTVisitor(registry, resolver)
        source = "from . import utils, VERSION\n"

        result = visitor.analyze_file("pkg/a.py", source, context)

        assert result.import_bindings["utils"].module_path == "pkg/utils.py"
        assert result.import_bindings["VERSION"].module_path == "pkg/__init__.py"


class TestAnonymousDefaultExports:
    """export default of unnamed classes and functions."""

    def test_anonymous_class(self, visitor, context):
        source = (
            "export default class {\n"
            "  run() { return go(); }\n"
            "}\n"
            "export abstract class X extends Y {}\n"
        )

        result = visitor.analyze_file("a.ts", source, context)

        assert result.success
        (anonymous,) = find_elements(result, "", ElementType.CLASS)
        (run,) = find_elements(result, "run", ElementType.METHOD)
        assert find_elements(result, "X", ElementType.CLASS)
        assert anonymous.location.start_line == 1
        assert [(r.source_id, r.target_id) for r in result.relations] == [(anonymous.id, run.id)]
        assert references_of(result, run, RelationType.CALLS) == ["go"]

    def test_anonymous_function(self, visitor, context):
        source = "export default function () {\n  return helper();\n}\n"

        result = visitor.analyze_file("b.js", source, context)

        assert result.success
        (anonymous,) = find_elements(result, "", ElementType.FUNCTION)
        assert references_of(result, anonymous, RelationType.CALLS) == ["helper"]

    def test_class_expressions_stay_variables(self, visitor, context):
        result = visitor.analyze_file("c.ts", "const Widget = class {};\n", context)

        assert [(e.name, e.type) for e in result.elements] == [("Widget", ElementType.VARIABLE)]


class TestJavaScript:
    """JavaScript specific shapes."""

    SOURCE = (
        "const util = require('./util');\n"
        "class Widget extends Base {\n"
        "  render() { return util.draw(); }\n"
        "}\n"
        "const make = function () { return new Widget(); };\n"
        "setup();\n"
    )

    @pytest.fixture
    def result(self, visitor, context):
        return visitor.analyze_file("widget.js", self.SOURCE, context)

    def test_entities(self, result):
        assert find_elements(result, "util", ElementType.VARIABLE)
        assert find_elements(result, "Widget", ElementType.CLASS)
        assert find_elements(result, "render", ElementType.METHOD)
        assert find_elements(result, "make", ElementType.FUNCTION)

    def test_relations(self, result):
        (widget,) = find_elements(result, "Widget")
        (render,) = find_elements(result, "render")
        (make,) = find_elements(result, "make")

        assert references_of(result, widget, RelationType.INHERITS) == ["Base"]
        assert references_of(result, render, RelationType.CALLS) == ["draw"]
        assert references_of(result, make, RelationType.CALLS) == ["Widget"]

    def test_top_level_call_dropped(self, result):
        assert "setup" not in {ref.target_name for ref in result.references}


class TestPython:
    """Python classes, methods and imports."""

    SOURCE = (
        "import os\n"
        "from .models import Base, Mixin as M\n"
        "\n"
        "\n"
        "class Service(Base, M):\n"
        "    def run(self):\n"
        "        self.ready = True\n"
        "        return helper()\n"
        "\n"
        "\n"
        "def helper():\n"
        "    value = 1\n"
        "    return value\n"
    )

    @pytest.fixture
    def result(self, visitor, context):
        return visitor.analyze_file("pkg/service.py", self.SOURCE, context)

    def test_entities(self, result):
        assert result.success
        assert find_elements(result, "Service", ElementType.CLASS)
        assert find_elements(result, "run", ElementType.METHOD)
        assert find_elements(result, "helper", ElementType.FUNCTION)
        assert find_elements(result, "value", ElementType.VARIABLE)
        assert [e.name for e in result.elements if e.type == ElementType.IMPORT] == [
            "os",
            ".models",
        ]

    def test_attribute_assignment_is_not_a_variable(self, result):
        assert not find_elements(result, "ready")
        assert not [e for e in result.elements if e.name == "" and e.type == ElementType.VARIABLE]

    def test_relations(self, result):
        (service,) = find_elements(result, "Service")
        (run,) = find_elements(result, "run")

        assert references_of(result, service, RelationType.INHERITS) == ["Base", "M"]
        assert references_of(result, run, RelationType.CALLS) == ["helper"]

    def test_from_import_bindings(self, result):
        assert result.import_bindings["Base"].imported_name == "Base"
        assert result.import_bindings["M"].imported_name == "Mixin"
        assert "os" not in result.import_bindings


class TestVue:
    """Script blocks of single-file components."""

    def test_script_entities_keep_file_positions(self, visitor, context):
        source = (
            "<template>\n"
            "  <div>{{ msg }}</div>\n"
            "</template>\n"
            '<script lang="ts">\n'
            "export class Hello {\n"
            "  msg: string = 'hi';\n"
            "}\n"
            "</script>\n"
        )

        result = visitor.analyze_file("src/Hello.vue", source, context)

        assert result.success
        (hello,) = find_elements(result, "Hello", ElementType.CLASS)
        assert hello.file_path == "src/Hello.vue"
        assert hello.location.start_line == 5
        assert find_elements(result, "msg", ElementType.PROPERTY)


class TestFailures:
    """Per-file failures are results, not exceptions."""

    def test_empty_path_raises(self, visitor, context):
        with pytest.raises(ValueError):
            visitor.analyze_file("", "class A {}", context)

    def test_syntax_error_contributes_nothing(self, visitor, context):
        result = visitor.analyze_file("broken.ts", "export class {{{ oops", context)

        assert not result.success
        assert result.error
        assert result.elements == []
        assert result.relations == []
        assert result.references == []

    def test_lenient_parse_keeps_partial_results(self, registry, context):
        visitor = ASTVisitor(registry, strict_parse=False)
        result = visitor.analyze_file("partial.ts", "class Ok {}\nfunction (\n", context)

        assert result.success
        assert find_elements(result, "Ok", ElementType.CLASS)

    def test_unsupported_file(self, visitor, context):
        result = visitor.analyze_file("README.md", "# hi", context)

        assert not result.success
        assert result.elements == []


class TestLanguageSetup:
    def test_every_loaded_grammar_has_an_extractor(self, visitor):
        assert set(visitor.languages) == {"typescript", "tsx", "javascript", "python"}
        for language in visitor.languages:
            assert ExtractorRegistry.get_extractor(language) is not None
