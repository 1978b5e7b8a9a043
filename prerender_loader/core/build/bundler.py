"""
Python Bundler
==============

Reference host build for Python client applications. Modules are
CommonJS-style Python files that load each other with ``require("./x")``.
Literal requires are resolved at build time and rewritten to asset ids;
compile-time defines are substituted into the syntax tree; every module is
emitted as its own asset next to a main bundle that binds the entry's
exports to the library global.
"""

import ast
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import jinja2

from prerender_loader.config.logging import get_logger
from prerender_loader.core.build.entry import apply_entry, convert_path_to_relative
from prerender_loader.core.build.host import BuildPlugin, HostBuild, NestedBuild
from prerender_loader.models.schemas import Compilation, Diagnostic, EntrySpec

logger = get_logger(__name__)

_TEMPLATE_DIR = Path(__file__).parent / "templates"


def _template_environment() -> jinja2.Environment:
    env = jinja2.Environment(
        loader=jinja2.FileSystemLoader(str(_TEMPLATE_DIR)),
        autoescape=False,
        undefined=jinja2.StrictUndefined,
    )
    env.filters["pyrepr"] = repr
    return env


class _DefineTransformer(ast.NodeTransformer):
    """Replaces reads of defined names with their constant values."""

    def __init__(self, definitions: Dict[str, Any]) -> None:
        self.definitions = definitions

    def visit_Name(self, node: ast.Name) -> ast.AST:
        if isinstance(node.ctx, ast.Load) and node.id in self.definitions:
            return ast.copy_location(ast.Constant(value=self.definitions[node.id]), node)
        return node


class _RequireCollector(ast.NodeTransformer):
    """Rewrites ``require("<literal>")`` calls through a resolver callback."""

    def __init__(self, resolve: Any) -> None:
        self.resolve = resolve

    def visit_Call(self, node: ast.Call) -> ast.AST:
        self.generic_visit(node)
        if (
            isinstance(node.func, ast.Name)
            and node.func.id == "require"
            and len(node.args) == 1
            and not node.keywords
            and isinstance(node.args[0], ast.Constant)
            and isinstance(node.args[0].value, str)
        ):
            module_id = self.resolve(node.args[0].value, node.lineno)
            if module_id is not None:
                node.args[0] = ast.copy_location(ast.Constant(value=module_id), node.args[0])
        return node


class ModuleGraphCompiler:
    """Walks the require graph from a set of entries and emits assets."""

    def __init__(
        self,
        name: str,
        context: Path,
        plugins: Iterable[BuildPlugin],
        definitions: Dict[str, Any],
        cache: Dict[str, Any],
    ) -> None:
        self.name = name
        self.context = context
        self.plugins = list(plugins)
        self.definitions = definitions
        self.cache = cache
        self.assets: Dict[str, str] = {}
        self.errors: List[Diagnostic] = []
        self.warnings: List[Diagnostic] = []
        self.extracted: Dict[int, List[str]] = {}
        self.logger: Any = logger.bind(build=name)

    def asset_id(self, path: Path) -> str:
        return Path(os.path.relpath(path, self.context)).as_posix()

    @staticmethod
    def load_id(asset_id: str) -> str:
        return asset_id if asset_id.startswith("..") else "./" + asset_id

    def resolve(self, request: str, base: Path) -> Optional[Path]:
        """Resolve a request to a file: as given, with ``.py``, or as a package."""
        root = base if request.startswith(".") else self.context
        candidate = (root / request).resolve()
        for option in (candidate, candidate.with_name(candidate.name + ".py"), candidate / "__init__.py"):
            if option.is_file():
                return option
        return None

    def add_entry(self, request: str) -> Optional[str]:
        path = self.resolve(request, self.context)
        if path is None:
            self._error(
                f"Entry module not found: Error: Can't resolve '{request}' in '{self.context}'",
                module=request,
            )
            return None
        return self.add_module(path)

    def add_module(self, path: Path) -> Optional[str]:
        """Compile a module and its dependencies; returns the request id to load it with."""
        plugin = self._plugin_for(path.name)
        if plugin is not None:
            return self._add_resource(path, plugin)

        asset_id = self.asset_id(path)
        if asset_id in self.assets:
            return self.load_id(asset_id)
        if not path.is_file():
            self._error(f"Module not found: {asset_id}", module=asset_id)
            return None

        compiled = self._compile_module(path, asset_id)
        if compiled is None:
            return None
        source, dependencies = compiled
        self.assets[asset_id] = source
        for dependency in dependencies:
            self.add_module(Path(dependency))
        return self.load_id(asset_id)

    def _compile_module(self, path: Path, asset_id: str) -> Optional[Tuple[str, List[str]]]:
        stat = path.stat()
        stamp = (stat.st_mtime_ns, stat.st_size, tuple(sorted(self.definitions.items(), key=repr)))
        cached = self.cache.get(str(path))
        if cached is not None and cached["stamp"] == stamp:
            self.logger.debug("Module cache hit", module=asset_id)
            return cached["source"], cached["dependencies"]

        text = path.read_text(encoding="utf-8")
        try:
            tree = ast.parse(text, filename=asset_id)
        except SyntaxError as e:
            self._error(
                f"Module parse failed: {e.msg}",
                details=f"{asset_id}:{e.lineno}: SyntaxError: {e.msg}",
                module=asset_id,
            )
            return None

        dependencies: List[str] = []
        failed = False

        def resolve_require(request: str, lineno: int) -> Optional[str]:
            nonlocal failed
            target = self.resolve(request, path.parent)
            if target is None:
                failed = True
                self._error(
                    f"Module not found: Error: Can't resolve '{request}' in '{path.parent}'",
                    details=f"{asset_id}:{lineno}: Module not found: Error: Can't resolve '{request}'",
                    module=asset_id,
                )
                return None
            if target.suffix != ".py" and self._plugin_for(target.name) is None:
                failed = True
                self._error(
                    f"Module parse failed: no plugin handles '{request}'",
                    details=f"{asset_id}:{lineno}: You may need an appropriate plugin to handle '{request}'",
                    module=asset_id,
                )
                return None
            dependencies.append(str(target))
            return self._request_for(target)

        tree = _RequireCollector(resolve_require).visit(tree)
        tree = _DefineTransformer(self.definitions).visit(tree)
        ast.fix_missing_locations(tree)
        if failed:
            return None

        source = ast.unparse(tree)
        self.cache[str(path)] = {"stamp": stamp, "source": source, "dependencies": dependencies}
        return source, dependencies

    def _request_for(self, target: Path) -> str:
        asset_id = self.asset_id(target)
        if target.suffix != ".py":
            asset_id += ".py"
        return self.load_id(asset_id)

    def _add_resource(self, path: Path, plugin: BuildPlugin) -> str:
        asset_id = self.asset_id(path) + ".py"
        if asset_id not in self.assets:
            text = path.read_text(encoding="utf-8")
            self.extracted.setdefault(id(plugin), []).append(plugin.extract(path, text))
            self.assets[asset_id] = plugin.module_source(path)
        return self.load_id(asset_id)

    def _plugin_for(self, request: str) -> Optional[BuildPlugin]:
        if request.endswith(".py"):
            return None
        for plugin in self.plugins:
            if plugin.test(request):
                return plugin
        return None

    def emit_extracted(self, chunk_name: str) -> None:
        for plugin in self.plugins:
            parts = self.extracted.get(id(plugin))
            if parts:
                self.assets[plugin.asset_name(chunk_name)] = "\n".join(parts)

    def _error(self, message: str, details: str = "", module: Optional[str] = None) -> None:
        self.errors.append(Diagnostic(severity="error", message=message, details=details, module=module))
        self.logger.warning("Build error", error=message, module=module)


class PythonNestedBuild(NestedBuild):
    """Nested build over the bundler's module graph compiler."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.env = _template_environment()

    def compile(self) -> Compilation:
        compiler = ModuleGraphCompiler(
            self.name, self.context, self.plugins, dict(self.definitions), self.cache
        )
        template = self.env.get_template("bundle.py.j2")

        chunks = list(self.entries.items())
        main_chunk = "main" if "main" in self.entries else (chunks[0][0] if chunks else None)
        for chunk, items in chunks:
            modules = [compiler.add_entry(item) for item in items]
            if compiler.errors:
                continue
            filename = self.filename if chunk == main_chunk else f"{chunk}-{self.filename}"
            compiler.assets[filename] = template.render(
                chunk=chunk, build_name=self.name, library=self.library, modules=modules
            )
            compiler.emit_extracted(chunk)

        return Compilation(
            name=self.name,
            assets=compiler.assets if not compiler.errors else {},
            errors=compiler.errors,
            warnings=compiler.warnings,
        )


class PythonBundler(HostBuild):
    """
    Host build for Python client applications.

    Args:
        context: Directory entries and bare requests are resolved against
        entry: Entry module(s): a path, a list of paths or a name-to-path map
        plugins: Build plugins, such as StyleExtractPlugin
    """

    def __init__(self, context: Any, entry: EntrySpec, plugins: Iterable[Any] = ()) -> None:
        super().__init__(context, entry, plugins)
        self.logger: Any = logger.bind(component="bundler", context=str(self.context))

    def create_nested_build(
        self, name: str, filename: str, library: str, plugins: Iterable[BuildPlugin]
    ) -> PythonNestedBuild:
        self.logger.debug("Creating nested build", name=name, filename=filename)
        return PythonNestedBuild(name, self.context, filename, library, plugins)

    def build(self, filename: str = "bundle.py", library: str = "APP") -> Compilation:
        """Compile the client bundle itself, with the host's own definitions."""
        build = self.create_nested_build("client", filename, library, self.plugins)
        build.definitions.update(self.definitions)
        build.cache = self.cache.setdefault("client", {})
        apply_entry(convert_path_to_relative(self.context, self.entry, "./"), build)
        return build.compile()
