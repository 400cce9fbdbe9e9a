"""Tests for import specifier resolution."""

import pytest

from git_analysts.indexer.module_resolver import ModuleResolver, normalize_posix_path, resolve


class TestNormalizePath:
    """Repo-relative path normalization."""

    def test_collapses_dots(self):
        assert normalize_posix_path("src/./a/../b.ts") == "src/b.ts"

    def test_root(self):
        assert normalize_posix_path("src/..") == ""

    def test_escaping_root(self):
        assert normalize_posix_path("src/../../etc/passwd") is None


class TestJavaScriptResolution:
    """Relative, rooted, aliased and bare specifiers."""

    def make_resolver(self, *files):
        return ModuleResolver("/repo", known_files=files)

    def test_file_preferred_over_directory_index(self):
        resolver = self.make_resolver("src/foo.ts", "src/foo/index.ts")
        assert resolver.resolve("./foo", "src") == "src/foo.ts"

    def test_directory_index(self):
        resolver = self.make_resolver("src/foo/index.ts")
        assert resolver.resolve("./foo", "src") == "src/foo/index.ts"

    def test_extension_precedence(self):
        resolver = self.make_resolver("lib/a.jsx", "lib/a.js", "lib/a.tsx")
        assert resolver.resolve("./a", "lib") == "lib/a.tsx"

    def test_index_extension_precedence(self):
        resolver = self.make_resolver("ui/index.js", "ui/index.tsx")
        assert resolver.resolve("./ui", "") == "ui/index.tsx"

    def test_exact_path_with_extension(self):
        resolver = self.make_resolver("src/util.js", "src/util.js.ts")
        assert resolver.resolve("./util.js", "src") == "src/util.js"

    def test_parent_directory(self):
        resolver = self.make_resolver("src/shared/types.ts")
        assert resolver.resolve("../shared/types", "src/components") == "src/shared/types.ts"

    def test_escaping_root_is_unresolved(self):
        resolver = self.make_resolver("a.ts")
        assert resolver.resolve("../../a", "src") is None

    def test_root_relative(self):
        resolver = self.make_resolver("lib/x.ts")
        assert resolver.resolve("/lib/x", "src/deep/dir") == "lib/x.ts"

    def test_default_aliases(self):
        resolver = self.make_resolver("src/utils.ts", "src/store/index.js")
        assert resolver.resolve("@/utils", "src/components") == "src/utils.ts"
        assert resolver.resolve("~/store", "") == "src/store/index.js"

    def test_custom_aliases(self):
        resolver = ModuleResolver(
            "/repo", known_files=["app/core/api.ts"], path_aliases={"#core/": "app/core/"}
        )
        assert resolver.resolve("#core/api", "") == "app/core/api.ts"
        assert resolver.resolve("@/api", "") is None

    def test_external_package_is_unresolved(self):
        resolver = self.make_resolver("src/index.ts")
        assert resolver.resolve("react", "src") is None
        assert resolver.resolve("@angular/core", "src") is None

    def test_missing_file_is_unresolved(self):
        resolver = self.make_resolver("src/a.ts")
        assert resolver.resolve("./missing", "src") is None

    def test_empty_specifier(self):
        assert self.make_resolver("a.ts").resolve("", "") is None


class TestDiskResolution:
    """Existence checks against the file system."""

    def test_absolute_importing_dir(self, write_repo):
        root = write_repo({"src/a.ts": "", "src/b/index.js": ""})
        resolver = ModuleResolver(str(root))

        assert resolver.resolve("./a", str(root / "src")) == "src/a.ts"
        assert resolver.resolve("./b", "src") == "src/b/index.js"

    def test_importing_dir_outside_root(self, write_repo, tmp_path_factory):
        root = write_repo({"a.ts": ""})
        elsewhere = tmp_path_factory.mktemp("elsewhere")
        assert ModuleResolver(str(root)).resolve("./a", str(elsewhere)) is None

    def test_module_function(self, write_repo):
        root = write_repo({"src/foo.ts": "", "src/foo/index.ts": ""})
        assert resolve("./foo", "src", str(root)) == "src/foo.ts"

    def test_directory_is_not_a_file(self, write_repo):
        root = write_repo({"src/lib.ts/readme.txt": ""})
        assert resolve("./lib.ts", "src", str(root)) is None


class TestPythonResolution:
    """Dotted module names, relative and absolute."""

    @pytest.fixture
    def resolver(self):
        return ModuleResolver(
            "/repo",
            known_files=[
                "pkg/__init__.py",
                "pkg/models.py",
                "pkg/util.py",
                "pkg/sub/__init__.py",
                "pkg/sub/service.py",
                "src/app/core.py",
            ],
        )

    def test_relative_sibling(self, resolver):
        assert resolver.resolve_python_module(".models", "pkg") == "pkg/models.py"

    def test_relative_parent(self, resolver):
        assert resolver.resolve_python_module("..util", "pkg/sub") == "pkg/util.py"

    def test_relative_package(self, resolver):
        assert resolver.resolve_python_module(".", "pkg/sub") == "pkg/sub/__init__.py"

    def test_absolute_module(self, resolver):
        assert resolver.resolve_python_module("pkg.sub.service", "") == "pkg/sub/service.py"
        assert resolver.resolve_python_module("pkg", "") == "pkg/__init__.py"

    def test_src_layout(self, resolver):
        assert resolver.resolve_python_module("app.core", "") == "src/app/core.py"

    def test_relative_escaping_root(self, resolver):
        assert resolver.resolve_python_module("...x", "pkg") is None

    def test_stdlib_module_is_unresolved(self, resolver):
        assert resolver.resolve_python_module("os.path", "pkg") is None

    def test_from_import_prefers_submodules(self, resolver):
        assert resolver.resolve_python_import(".", ["models", "util"], "pkg") == [
            "pkg/models.py",
            "pkg/util.py",
        ]
        assert resolver.resolve_python_import("pkg", ["sub"], "") == ["pkg/sub/__init__.py"]

    def test_from_import_of_symbol_falls_back_to_module(self, resolver):
        assert resolver.resolve_python_import(".models", ["User"], "pkg") == ["pkg/models.py"]
        assert resolver.resolve_python_import("pkg", ["models", "helper"], "") == [
            "pkg/models.py",
            "pkg/__init__.py",
        ]

    def test_from_import_without_package_init(self):
        resolver = ModuleResolver("/repo", known_files=["pkg/a.py", "pkg/utils.py"])

        assert resolver.resolve_python_import(".", ["utils"], "pkg") == ["pkg/utils.py"]
        assert resolver.resolve_python_import(".", ["missing"], "pkg") == []
        assert resolver.resolve_python_import(".", ["*"], "pkg") == []
