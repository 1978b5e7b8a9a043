"""
Nested Build Invoker
====================

Runs the isolated, entry-scoped build that produces the prerender bundle.
"""

import asyncio
import re
from typing import Any, Dict, List, Optional

from prerender_loader.config.logging import get_logger
from prerender_loader.config.settings import Settings, get_settings
from prerender_loader.core.build.entry import apply_entry, convert_path_to_relative
from prerender_loader.core.build.host import HostBuild
from prerender_loader.core.errors import ChildCompilationError
from prerender_loader.models.schemas import BuildRequest, CompiledAssetSet

logger = get_logger(__name__)


class NestedBuildInvoker:
    """Obtains compiled bundle source for one render from the host build."""

    def __init__(self, host: HostBuild, settings: Optional[Settings] = None) -> None:
        self.host = host
        self.settings = settings or get_settings()
        self.logger: Any = logger.bind(component="invoker")

    def create_request(self, request_id: str, entry_override: Optional[str] = None) -> BuildRequest:
        """
        Describe the nested build for a render.

        Args:
            request_id: Render request identifier
            entry_override: Entry taken from ``{{prerender:...}}``, if any

        Returns:
            BuildRequest for the nested build
        """
        if entry_override:
            entry: Any = "./" + entry_override
        else:
            entry = convert_path_to_relative(self.host.context, self.host.entry, "./")

        return BuildRequest(
            request_id=request_id,
            context=self.host.context,
            entry=entry,
            library_name=self.settings.library_name,
            bundle_filename=self.settings.bundle_filename,
            plugins=self.carried_plugins(),
            definitions={self.settings.define_name: True},
        )

    def carried_plugins(self) -> List[Any]:
        """Only style extraction plugins go along; extraction breaks without them."""
        pattern = re.compile(self.settings.style_plugin_pattern, re.IGNORECASE)
        return [p for p in self.host.plugins if pattern.search(type(p).__name__)]

    def cache_partition(self, request_id: str) -> Dict[str, Any]:
        """Per-request namespace inside the host's cache store."""
        return self.host.cache.setdefault(f"subcache {request_id}", {})

    async def compile(
        self, request_id: str, entry_override: Optional[str] = None
    ) -> CompiledAssetSet:
        """
        Run the nested build.

        Args:
            request_id: Render request identifier
            entry_override: Entry taken from ``{{prerender:...}}``, if any

        Returns:
            CompiledAssetSet with the main bundle designated

        Raises:
            ChildCompilationError: If the nested build reports errors or emits no main bundle
        """
        request = self.create_request(request_id, entry_override)
        nested = self.host.create_nested_build(
            self.settings.nested_build_name,
            request.bundle_filename,
            request.library_name,
            request.plugins,
        )
        for name, value in request.definitions.items():
            nested.define(name, value)
        self.host.define(self.settings.define_name, False)

        apply_entry(request.entry, nested)
        nested.cache = self.cache_partition(request_id)

        self.logger.info("Running nested build", request_id=request_id, entry=request.entry)
        compilation = await asyncio.to_thread(nested.compile)
        # the host still tracks the nested build's diagnostics
        self.host.children.append(compilation)

        if compilation.errors:
            details = [error.details for error in compilation.errors]
            self.logger.error("Nested build failed", request_id=request_id, errors=len(details))
            raise ChildCompilationError(details, request_id)

        if request.bundle_filename not in compilation.assets:
            raise ChildCompilationError(
                [f"Nested build did not emit {request.bundle_filename}"], request_id
            )

        self.logger.info(
            "Nested build completed", request_id=request_id, assets=len(compilation.assets)
        )
        return CompiledAssetSet(
            assets=compilation.assets,
            main=request.bundle_filename,
            warnings=compilation.warnings,
        )
