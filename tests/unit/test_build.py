"""
Unit Tests for the Build Layer
==============================

Tests for entry conversion, the Python bundler and the nested build invoker.
"""

from unittest.mock import Mock

import pytest

from prerender_loader.core.build.bundler import PythonNestedBuild
from prerender_loader.core.build.entry import apply_entry, convert_path_to_relative
from prerender_loader.core.build.host import BuildPlugin, HostBuild, StyleExtractPlugin
from prerender_loader.core.build.invoker import NestedBuildInvoker
from prerender_loader.core.errors import ChildCompilationError
from prerender_loader.models.schemas import Compilation


APP = {
    "main.py": """
        util = require("./util")
        exports["default"] = util["greet"]("world") if PRERENDER else "client"
    """,
    "util.py": """
        exports["greet"] = lambda name: f"<p>Hello {name}</p>"
    """,
}


class OtherPlugin(BuildPlugin):
    def test(self, request):
        return request.endswith(".svg")

    def extract(self, path, text):
        return text


class TestEntryHelpers:
    """Test entry path conversion and registration."""

    def test_convert_string(self, tmp_path):
        assert convert_path_to_relative(tmp_path, "src/../main.py", "./") == "./main.py"

    def test_convert_list_and_map(self, tmp_path):
        assert convert_path_to_relative(tmp_path, ["a.py", "./b/c.py"]) == ["a.py", "b/c.py"]
        assert convert_path_to_relative(tmp_path, {"home": "home.py", "shop": ["x.py"]}, "./") == {
            "home": "./home.py",
            "shop": ["./x.py"],
        }

    def test_convert_absolute_entry(self, tmp_path):
        assert convert_path_to_relative(tmp_path, str(tmp_path / "app" / "main.py"), "./") == "./app/main.py"

    def test_apply_string_and_list(self, tmp_path):
        build = PythonNestedBuild("n", tmp_path, "b.py", "LIB")
        apply_entry("./a.py", build)
        apply_entry(["./b.py", "./c.py"], build)
        assert build.entries == {"main": ["./a.py", "./b.py", "./c.py"]}

    def test_apply_named_entries(self, tmp_path):
        build = PythonNestedBuild("n", tmp_path, "b.py", "LIB")
        apply_entry({"home": "./home.py", "shop": ["./a.py", "./b.py"]}, build)
        assert build.entries == {"home": ["./home.py"], "shop": ["./a.py", "./b.py"]}


class TestHostContract:
    """Test the abstract build contract."""

    def test_host_build_is_abstract(self, tmp_path):
        with pytest.raises(TypeError):
            HostBuild(tmp_path, "./main.py")

    def test_style_plugin(self, tmp_path):
        plugin = StyleExtractPlugin()
        assert plugin.test("theme.CSS")
        assert not plugin.test("theme.py")
        assert plugin.asset_name("main") == "main.css"
        assert plugin.extract(tmp_path / "a.css", "p{}") == "/* a.css */\np{}"


class TestPythonBundler:
    """Test the reference host build."""

    def test_nested_build_assets(self, make_host):
        host = make_host(APP)
        nested = host.create_nested_build("prerender", "ssr-bundle.py", "PRERENDER_RESULT", [])
        nested.define("PRERENDER", True)
        apply_entry("./main.py", nested)

        compilation = nested.compile()

        assert compilation.errors == []
        assert set(compilation.assets) == {"main.py", "util.py", "ssr-bundle.py"}
        assert "require('./util.py')" in compilation.assets["main.py"]
        assert "PRERENDER" not in compilation.assets["main.py"]
        assert "if True else" in compilation.assets["main.py"]
        assert "PRERENDER_RESULT = require('./main.py')" in compilation.assets["ssr-bundle.py"]

    def test_client_build_uses_host_definitions(self, make_host):
        host = make_host(APP)
        host.define("PRERENDER", False)

        compilation = host.build()

        assert "if False else" in compilation.assets["main.py"]
        assert "APP = require('./main.py')" in compilation.assets["bundle.py"]

    def test_list_entry_binds_last_module(self, make_host):
        host = make_host({"polyfill.py": "x = 1", "main.py": "exports['default'] = 'm'"})
        nested = host.create_nested_build("prerender", "ssr-bundle.py", "LIB", [])
        apply_entry(["./polyfill.py", "./main.py"], nested)

        bundle = nested.compile().assets["ssr-bundle.py"]

        assert "require('./polyfill.py')" in bundle
        assert "LIB = require('./main.py')" in bundle
        assert "LIB = require('./polyfill.py')" not in bundle

    def test_named_entries_emit_chunk_bundles(self, make_host):
        host = make_host({"home.py": "", "shop.py": ""})
        nested = host.create_nested_build("prerender", "ssr-bundle.py", "LIB", [])
        apply_entry({"home": "./home.py", "shop": "./shop.py"}, nested)

        assets = nested.compile().assets

        assert "LIB = require('./home.py')" in assets["ssr-bundle.py"]
        assert "LIB = require('./shop.py')" in assets["shop-ssr-bundle.py"]

    def test_packages_resolve(self, make_host):
        host = make_host({
            "main.py": "exports['default'] = require('./widgets')['name']",
            "widgets/__init__.py": "exports['name'] = 'widgets'",
        })
        nested = host.create_nested_build("prerender", "ssr-bundle.py", "LIB", [])
        apply_entry("./main.py", nested)

        assets = nested.compile().assets

        assert "widgets/__init__.py" in assets
        assert "require('./widgets/__init__.py')" in assets["main.py"]

    def test_unresolved_require_is_reported(self, make_host):
        host = make_host({"main.py": "x = require('./nowhere')"})
        nested = host.create_nested_build("prerender", "ssr-bundle.py", "LIB", [])
        apply_entry("./main.py", nested)

        compilation = nested.compile()

        assert compilation.assets == {}
        assert len(compilation.errors) == 1
        assert "Can't resolve './nowhere'" in compilation.errors[0].details
        assert compilation.errors[0].details.startswith("main.py:1:")

    def test_syntax_error_is_reported(self, make_host):
        host = make_host({"main.py": "def broken(:\n"})
        nested = host.create_nested_build("prerender", "ssr-bundle.py", "LIB", [])
        apply_entry("./main.py", nested)

        compilation = nested.compile()

        assert "SyntaxError" in compilation.errors[0].details

    def test_missing_entry_is_reported(self, make_host):
        host = make_host({"main.py": ""})
        nested = host.create_nested_build("prerender", "ssr-bundle.py", "LIB", [])
        apply_entry("./other.py", nested)

        compilation = nested.compile()

        assert "Entry module not found" in compilation.errors[0].message

    def test_stylesheet_needs_plugin(self, make_host):
        files = {"main.py": "require('./theme.css')", "theme.css": "body { color: red }"}
        host = make_host(files)
        nested = host.create_nested_build("prerender", "ssr-bundle.py", "LIB", [])
        apply_entry("./main.py", nested)

        compilation = nested.compile()

        assert "appropriate plugin" in compilation.errors[0].details

    def test_stylesheet_is_extracted(self, make_host):
        files = {"main.py": "require('./theme.css')", "theme.css": "body { color: red }"}
        host = make_host(files)
        nested = host.create_nested_build("prerender", "ssr-bundle.py", "LIB", [StyleExtractPlugin()])
        apply_entry("./main.py", nested)

        assets = nested.compile().assets

        assert assets["theme.css.py"] == ""
        assert "require('./theme.css.py')" in assets["main.py"]
        assert "body { color: red }" in assets["main.css"]

    def test_cache_is_reused(self, make_host):
        host = make_host(APP)
        cache = {}
        for _ in range(2):
            nested = host.create_nested_build("prerender", "ssr-bundle.py", "LIB", [])
            nested.define("PRERENDER", True)
            nested.cache = cache
            apply_entry("./main.py", nested)
            nested.compile()

        assert str(host.context / "main.py") in cache
        assert str(host.context / "util.py") in cache


class TestNestedBuildInvoker:
    """Test running the nested build for a render."""

    @pytest.fixture
    def invoker_for(self, make_host, test_settings):
        def _make(files, **kwargs):
            return NestedBuildInvoker(make_host(files, **kwargs), test_settings)

        return _make

    def test_request_uses_host_entry(self, invoker_for, test_settings):
        invoker = invoker_for(APP)
        request = invoker.create_request("req")

        assert request.entry == "./main.py"
        assert request.definitions == {test_settings.define_name: True}
        assert request.library_name == test_settings.library_name
        assert request.bundle_filename == test_settings.bundle_filename

    def test_request_entry_override(self, invoker_for):
        request = invoker_for(APP).create_request("req", "pages/home.py")
        assert request.entry == "./pages/home.py"

    def test_named_host_entry(self, invoker_for):
        invoker = invoker_for(APP, entry={"main": "main.py", "admin": "util.py"})
        assert invoker.create_request("req").entry == {"main": "./main.py", "admin": "./util.py"}

    def test_only_style_plugins_are_carried(self, invoker_for):
        style = StyleExtractPlugin()
        invoker = invoker_for(APP, plugins=[OtherPlugin(), style])
        assert invoker.carried_plugins() == [style]

    def test_cache_partition_per_request(self, invoker_for):
        invoker = invoker_for(APP)
        first = invoker.cache_partition("a")
        assert invoker.cache_partition("a") is first
        assert invoker.cache_partition("b") is not first
        assert "subcache a" in invoker.host.cache

    @pytest.mark.asyncio
    async def test_compile(self, invoker_for, test_settings):
        invoker = invoker_for(APP)

        assets = await invoker.compile("req")

        assert assets.main == test_settings.bundle_filename
        assert "if True else" in assets.source("main.py")
        assert invoker.host.definitions == {test_settings.define_name: False}
        assert len(invoker.host.children) == 1
        assert invoker.host.cache["subcache req"]

    @pytest.mark.asyncio
    async def test_compile_reports_missing_module(self, invoker_for):
        invoker = invoker_for({"main.py": "require('./missing')"})

        with pytest.raises(ChildCompilationError) as exc_info:
            await invoker.compile("req-missing")

        error = exc_info.value
        assert error.request_id == "req-missing"
        assert error.message.startswith("Child compilation failed:\n")
        assert "'./missing'" in error.message
        assert invoker.host.children[0].errors

    @pytest.mark.asyncio
    async def test_style_plugin_carried_into_nested_build(self, invoker_for, test_settings):
        files = {"main.py": "require('./theme.css')", "theme.css": "h1 { margin: 0 }"}
        invoker = invoker_for(files, plugins=[StyleExtractPlugin()])

        assets = await invoker.compile("req-style")

        assert "h1 { margin: 0 }" in assets.source("main.css")


class TestNestedBuildInvokerContract:
    """Test the invoker against a stub host build."""

    @pytest.fixture
    def stub_host(self, tmp_path):
        nested = Mock()
        host = Mock()
        host.context = tmp_path
        host.entry = "./main.py"
        host.plugins = []
        host.cache = {}
        host.children = []
        host.create_nested_build.return_value = nested
        return host

    @pytest.mark.asyncio
    async def test_nested_build_configuration(self, stub_host, test_settings):
        nested = stub_host.create_nested_build.return_value
        nested.compile.return_value = Compilation(
            name="prerender", assets={test_settings.bundle_filename: ""}
        )

        await NestedBuildInvoker(stub_host, test_settings).compile("req")

        stub_host.create_nested_build.assert_called_once_with(
            test_settings.nested_build_name,
            test_settings.bundle_filename,
            test_settings.library_name,
            [],
        )
        nested.define.assert_called_once_with(test_settings.define_name, True)
        stub_host.define.assert_called_once_with(test_settings.define_name, False)
        nested.add_entry.assert_called_once_with("main", "./main.py")
        assert nested.cache is stub_host.cache["subcache req"]

    @pytest.mark.asyncio
    async def test_missing_main_bundle(self, stub_host, test_settings):
        nested = stub_host.create_nested_build.return_value
        nested.compile.return_value = Compilation(name="prerender", assets={"other.py": ""})

        with pytest.raises(ChildCompilationError, match="did not emit"):
            await NestedBuildInvoker(stub_host, test_settings).compile("req")

        assert len(stub_host.children) == 1
