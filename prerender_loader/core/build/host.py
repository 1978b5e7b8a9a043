"""
Host Build Contract
===================

What the prerender pipeline needs from the surrounding build: nested,
entry-scoped builds with in-memory output, a persistent cache store it can
partition, compile-time defines kept separate between host and nested
builds, and plugins that can be carried into the nested build.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, List, Sequence, Union

from prerender_loader.models.schemas import Compilation, EntrySpec


class BuildPlugin(ABC):
    """A build plugin that takes over non-Python resources."""

    @abstractmethod
    def test(self, request: str) -> bool:
        """Whether this plugin handles the requested resource."""
        pass

    @abstractmethod
    def extract(self, path: Path, text: str) -> str:
        """Contribution of the resource to the plugin's emitted asset."""
        pass

    def module_source(self, path: Path) -> str:
        """Python module body standing in for the resource."""
        return ""

    def asset_name(self, chunk_name: str) -> str:
        return f"{chunk_name}.out"


class StyleExtractPlugin(BuildPlugin):
    """Extracts required stylesheets into one ``<chunk>.css`` asset per build."""

    def __init__(self, extensions: Sequence[str] = (".css",)) -> None:
        self.extensions = tuple(ext.lower() for ext in extensions)

    def test(self, request: str) -> bool:
        return request.lower().endswith(self.extensions)

    def extract(self, path: Path, text: str) -> str:
        return f"/* {path.name} */\n{text}"

    def asset_name(self, chunk_name: str) -> str:
        return f"{chunk_name}.css"


class NestedBuild(ABC):
    """An isolated, entry-scoped build whose output never reaches the host's output."""

    def __init__(
        self,
        name: str,
        context: Path,
        filename: str,
        library: str,
        plugins: Iterable[BuildPlugin] = (),
    ) -> None:
        self.name = name
        self.context = Path(context)
        self.filename = filename
        self.library = library
        self.plugins: List[BuildPlugin] = list(plugins)
        self.definitions: Dict[str, Any] = {}
        self.cache: Dict[str, Any] = {}
        self.entries: Dict[str, List[str]] = {}

    def define(self, name: str, value: Any) -> None:
        self.definitions[name] = value

    def add_entry(self, name: str, item: Union[str, List[str]]) -> None:
        items = [item] if isinstance(item, str) else list(item)
        self.entries.setdefault(name, []).extend(items)

    @abstractmethod
    def compile(self) -> Compilation:
        """Run the build and return assets plus diagnostics. Blocking."""
        pass


class HostBuild(ABC):
    """The outer build a prerender runs inside of."""

    def __init__(
        self,
        context: Union[str, Path],
        entry: EntrySpec,
        plugins: Iterable[Any] = (),
    ) -> None:
        self.context = Path(context).resolve()
        self.entry = entry
        self.plugins: List[Any] = list(plugins)
        self.cache: Dict[str, Any] = {}
        self.children: List[Compilation] = []
        self.definitions: Dict[str, Any] = {}

    def define(self, name: str, value: Any) -> None:
        self.definitions[name] = value

    @abstractmethod
    def create_nested_build(
        self, name: str, filename: str, library: str, plugins: Iterable[BuildPlugin]
    ) -> NestedBuild:
        """Create a nested build sharing this build's context."""
        pass
