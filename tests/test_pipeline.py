#!/usr/bin/env python3
"""
End-to-end extraction through the libclang front end.
"""

from pathlib import Path

import pytest

from ctreeshake.config import IncludeMacroMatch, ShakeConfig
from ctreeshake.errors import ParseFailure
from ctreeshake.extract import extract_symbols
from ctreeshake.pipeline import build_graph, shake
from ctreeshake.symbols import SymbolKind


def _config(root: Path, sources: list[str], **kwargs) -> ShakeConfig:
    kwargs.setdefault("output_dir", root / "out")
    return ShakeConfig(sources=[root / "src" / s for s in sources], **kwargs)


def _tree(root: Path) -> dict[str, bytes]:
    return {
        str(path.relative_to(root)): path.read_bytes()
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }


class TestScenarios:
    def test_forward_declaration_and_definition(self, temp_project, write_files):
        source = (
            "int helper(void);\n"
            "int main(void){ return helper(); }\n"
            "int helper(void){ return 1; }\n"
        )
        write_files(temp_project / "src", {"main.c": source})

        shake(_config(temp_project, ["main.c"]))

        assert (temp_project / "out" / "main.c").read_text() == source

    def test_unrelated_symbols_dropped(self, temp_project, write_files):
        write_files(
            temp_project / "src",
            {
                "main.c": (
                    "struct unused_s { int a; };\n"
                    "static int counter;\n"
                    "int helper(void);\n"
                    "int unused(void) { return counter; }\n"
                    "int main(void){ return helper(); }\n"
                    "int helper(void){ return 1; }\n"
                )
            },
        )

        shake(_config(temp_project, ["main.c"]))

        assert (temp_project / "out" / "main.c").read_text() == (
            "int helper(void);\n"
            "int main(void){ return helper(); }\n"
            "int helper(void){ return 1; }\n"
        )

    def test_macro_in_unreachable_function_dropped(self, temp_project, write_files):
        write_files(
            temp_project / "src",
            {
                "main.c": (
                    "#define SQUARE(x) ((x)*(x))\n"
                    "int g(int v) { return SQUARE(v); }\n"
                    "int main(void) { return 0; }\n"
                )
            },
        )

        shake(_config(temp_project, ["main.c"]))

        output = (temp_project / "out" / "main.c").read_text()
        assert output == "int main(void) { return 0; }\n"
        assert "SQUARE" not in output

    def test_used_macro_definition_kept(self, temp_project, write_files):
        write_files(
            temp_project / "src",
            {
                "main.c": (
                    "#define SQUARE(x) ((x)*(x))\n"
                    "#define CUBE(x) ((x)*(x)*(x))\n"
                    "int main(void) { return SQUARE(3) - 9; }\n"
                )
            },
        )

        shake(_config(temp_project, ["main.c"]))

        assert (temp_project / "out" / "main.c").read_text() == (
            "#define SQUARE(x) ((x)*(x))\n"
            "int main(void) { return SQUARE(3) - 9; }\n"
        )

    def test_header_declaration_with_definition_in_other_unit(self, temp_project, write_files):
        write_files(
            temp_project / "src",
            {
                "main.c": '#include "util.h"\nint main(void) { return add(1, 2); }\n',
                "util.h": "int add(int a, int b);\nint sub(int a, int b);\n",
                "util.c": (
                    '#include "util.h"\n'
                    "int add(int a, int b) { return a + b; }\n"
                    "int sub(int a, int b) { return a - b; }\n"
                ),
            },
        )

        shake(_config(temp_project, ["main.c", "util.c"]))

        out = temp_project / "out"
        assert (out / "main.c").read_text() == (
            '#include "util.h"\nint main(void) { return add(1, 2); }\n'
        )
        assert (out / "util.h").read_text() == "int add(int a, int b);\n"
        assert (out / "util.c").read_text() == (
            '#include "util.h"\nint add(int a, int b) { return a + b; }\n'
        )

    def test_vendor_include_copied_verbatim(self, temp_project, write_files):
        files = write_files(
            temp_project / "src",
            {
                "main.c": (
                    "static const int table[] = {\n"
                    '#include "vendor/table.inc"\n'
                    "};\n"
                    "int main(void) { return table[0]; }\n"
                ),
                "vendor/table.inc": "/* generated */\n1, 2,\n3\n",
            },
        )

        result = shake(_config(temp_project, ["main.c"]))

        out = temp_project / "out"
        assert (out / "vendor" / "table.inc").read_bytes() == files["vendor/table.inc"].read_bytes()
        assert (out / "main.c").read_bytes() == files["main.c"].read_bytes()
        assert [p.name for p in result.output.copied] == ["table.inc"]


class TestIncludedFragments:
    """Files included inside a symbol body that hold no declarations of their own."""

    def test_fragment_using_macro_copied_verbatim(self, temp_project, write_files):
        files = write_files(
            temp_project / "src",
            {
                "main.c": (
                    "#define ONE 1\n"
                    "#define TWO 2\n"
                    "static const int table[] = {\n"
                    '#include "t.inc"\n'
                    "};\n"
                    "int main(void) { return table[0]; }\n"
                ),
                "t.inc": "/* gen */\nONE,\n2\n",
            },
        )

        result = shake(_config(temp_project, ["main.c"]))

        out = temp_project / "out"
        assert (out / "t.inc").read_bytes() == files["t.inc"].read_bytes()
        assert (out / "main.c").read_text() == (
            "#define ONE 1\n"
            "static const int table[] = {\n"
            '#include "t.inc"\n'
            "};\n"
            "int main(void) { return table[0]; }\n"
        )
        assert [p.name for p in result.output.copied] == ["t.inc"]

    @pytest.mark.parametrize("mode", list(IncludeMacroMatch))
    def test_fragment_defining_macro_copied_verbatim(self, temp_project, write_files, mode):
        files = write_files(
            temp_project / "src",
            {
                "main.c": (
                    "int main(void) {\n"
                    '#include "body.inc"\n'
                    "    return v + VALUE;\n"
                    "}\n"
                ),
                "body.inc": "#define VALUE 3\nint v = 3;\n",
            },
        )

        shake(_config(temp_project, ["main.c"], include_macro_match=mode))

        out = temp_project / "out"
        assert (out / "body.inc").read_bytes() == files["body.inc"].read_bytes()
        assert (out / "main.c").read_bytes() == files["main.c"].read_bytes()


class TestStructAndTypedefDependencies:
    def test_typedef_pulls_in_struct(self, temp_project, write_files):
        write_files(
            temp_project / "src",
            {
                "main.c": (
                    "struct point { int x; int y; };\n"
                    "typedef struct point Point;\n"
                    "struct other { int z; };\n"
                    "int norm(Point *p) { return p->x + p->y; }\n"
                    "int main(void) { Point p = {1, 2}; return norm(&p); }\n"
                )
            },
        )

        shake(_config(temp_project, ["main.c"]))

        assert (temp_project / "out" / "main.c").read_text() == (
            "struct point { int x; int y; };\n"
            "typedef struct point Point;\n"
            "int norm(Point *p) { return p->x + p->y; }\n"
            "int main(void) { Point p = {1, 2}; return norm(&p); }\n"
        )

    def test_global_variable_type(self, temp_project, write_files):
        write_files(
            temp_project / "src",
            {
                "main.c": (
                    "struct config { int verbose; };\n"
                    "struct config settings;\n"
                    "int main(void) { return settings.verbose; }\n"
                )
            },
        )

        shake(_config(temp_project, ["main.c"]))

        assert (temp_project / "out" / "main.c").read_text() == (
            "struct config { int verbose; };\n"
            "struct config settings;\n"
            "int main(void) { return settings.verbose; }\n"
        )


class TestSystemHeaders:
    def test_system_include_kept_but_not_emitted(self, temp_project, write_files):
        files = write_files(
            temp_project,
            {
                "sys/mylib.h": "int mylib_fn(void);\nint mylib_other(void);\n",
                "src/main.c": "#include <mylib.h>\nint main(void) { return mylib_fn(); }\n",
            },
        )
        config = _config(
            temp_project, ["main.c"], clang_args=["-std=c99", "-isystem", str(temp_project / "sys")]
        )

        result = shake(config)

        assert (temp_project / "out" / "main.c").read_text() == files["src/main.c"].read_text()
        assert not (temp_project / "out" / "mylib.h").exists()
        assert "mylib.h" in result.graph.discovery.registry

    def test_system_macro_keeps_include(self, temp_project, write_files):
        write_files(
            temp_project,
            {
                "sys/mylib.h": "#define MYLIB_ANSWER 42\n",
                "src/main.c": "#include <mylib.h>\nint main(void) { return MYLIB_ANSWER; }\n",
            },
        )
        config = _config(
            temp_project, ["main.c"], clang_args=["-std=c99", "-isystem", str(temp_project / "sys")]
        )

        shake(config)

        assert (temp_project / "out" / "main.c").read_text() == (
            "#include <mylib.h>\nint main(void) { return MYLIB_ANSWER; }\n"
        )


class TestGraphProperties:
    @pytest.fixture
    def two_unit_project(self, temp_project, write_files):
        write_files(
            temp_project / "src",
            {
                "main.c": (
                    '#include "util.h"\n'
                    "#define TWICE(x) ((x) + (x))\n"
                    "static int unused(void) { return 7; }\n"
                    "int main(void) { return TWICE(add(1, 2)); }\n"
                ),
                "util.h": "typedef int num;\nnum add(num a, num b);\n",
                "util.c": '#include "util.h"\nnum add(num a, num b) { return a + b; }\n',
            },
        )
        return temp_project

    def test_closure(self, two_unit_project):
        graph = build_graph(_config(two_unit_project, ["main.c", "util.c"]))
        extracted = extract_symbols({"main"}, graph.table)

        for symbol in extracted:
            if symbol.is_leaf:
                continue
            descriptor = graph.table[symbol]
            assert descriptor.deps <= extracted
            assert descriptor.definitions <= extracted

    def test_reachability(self, two_unit_project):
        graph = build_graph(_config(two_unit_project, ["main.c", "util.c"]))
        extracted = extract_symbols({"main"}, graph.table)

        reached = set()

        def walk(symbol):
            if symbol in reached:
                return
            reached.add(symbol)
            if not symbol.is_leaf:
                for edge in graph.table[symbol].edges:
                    walk(edge)

        for seed in graph.table.named({"main"}):
            walk(seed)

        assert reached == extracted
        assert "unused" not in {symbol.name for symbol in extracted}

    def test_extracted_edges_are_keys_or_leaves(self, two_unit_project):
        graph = build_graph(_config(two_unit_project, ["main.c", "util.c"]))
        extracted = extract_symbols({"main"}, graph.table)

        for symbol in extracted:
            assert symbol in graph.table or symbol.is_leaf

    def test_merge_symmetry_across_unit_order(self, two_unit_project):
        def header_definitions(order):
            graph = build_graph(_config(two_unit_project, order))
            declarations = [
                symbol
                for symbol in graph.table
                if symbol.name == "add" and symbol.path.endswith("util.h")
            ]
            assert len(declarations) == 2  # one per translation unit
            sets = {
                frozenset((Path(d.path).name, d.start_line) for d in graph.table[decl].definitions)
                for decl in declarations
            }
            assert len(sets) == 1
            return sets.pop()

        assert header_definitions(["main.c", "util.c"]) == header_definitions(["util.c", "main.c"])
        assert header_definitions(["main.c", "util.c"]) == {("util.c", 2)}

    def test_idempotent_output(self, two_unit_project):
        first = two_unit_project / "out1"
        second = two_unit_project / "out2"

        shake(_config(two_unit_project, ["main.c", "util.c"], output_dir=first))
        shake(_config(two_unit_project, ["main.c", "util.c"], output_dir=second))
        before_rerun = _tree(first)
        shake(_config(two_unit_project, ["main.c", "util.c"], output_dir=first))

        assert _tree(first) == _tree(second) == before_rerun
        assert _tree(first)["util.h"] == b"typedef int num;\nnum add(num a, num b);\n"
        assert _tree(first)["main.c"] == (
            b'#include "util.h"\n'
            b"#define TWICE(x) ((x) + (x))\n"
            b"int main(void) { return TWICE(add(1, 2)); }\n"
        )


class TestIncludeMacroMatch:
    @pytest.fixture
    def nested_include_project(self, temp_project, write_files):
        write_files(
            temp_project / "src",
            {
                "main.c": (
                    '#include "xbody.inc"\n'
                    "int main(void) {\n"
                    '#include "body.inc"\n'
                    "    return 0;\n"
                    "}\n"
                ),
                "body.inc": "#define VALUE 3\n",
                "xbody.inc": "#define OTHER 4\n",
            },
        )
        return temp_project

    def _main_dep_macros(self, root, mode):
        graph = build_graph(_config(root, ["main.c"], include_macro_match=mode))
        (main,) = graph.table.named({"main"})
        return {
            dep.name for dep in graph.table[main].deps if dep.kind == SymbolKind.MACRO_DEFINITION
        }

    def test_path_match(self, nested_include_project):
        """VALUE is never expanded in main; only the include inside it brings it in."""
        macros = self._main_dep_macros(nested_include_project, IncludeMacroMatch.PATH)
        assert "VALUE" in macros
        assert "OTHER" not in macros

    def test_substring_match_over_approximates(self, nested_include_project):
        macros = self._main_dep_macros(nested_include_project, IncludeMacroMatch.SUBSTRING)
        assert macros == {"VALUE", "OTHER"}


def test_missing_source_is_parse_failure(temp_project):
    config = _config(temp_project, ["does_not_exist.c"])
    with pytest.raises(ParseFailure, match="does_not_exist.c"):
        shake(config)
