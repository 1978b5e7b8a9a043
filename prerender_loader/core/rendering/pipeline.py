"""
Prerender Pipeline
==================

Runs one render: nested build, sandbox, execution, export resolution and
injection, strictly in that order. Also the loader-style entry point that
decides between script and markup resources.
"""

import json
import re
import time
from typing import Any, Dict, List, Mapping, Optional, Union
from urllib.parse import unquote_plus

from prerender_loader.config.logging import get_logger
from prerender_loader.config.settings import Settings, get_settings
from prerender_loader.core.build.host import HostBuild
from prerender_loader.core.build.invoker import NestedBuildInvoker
from prerender_loader.core.errors import PrerenderError
from prerender_loader.core.rendering.executor import BundleExecutor
from prerender_loader.core.rendering.injector import Injector, string_to_module
from prerender_loader.core.rendering.resolver import ExportResolver
from prerender_loader.core.sandbox.environment import SandboxBuilder
from prerender_loader.core.sandbox.placeholder import find_marker, resolve_entry_override
from prerender_loader.models.schemas import RenderOptions

logger = get_logger(__name__)

SCRIPT_REG = re.compile(r"\.pyw?$", re.IGNORECASE)


class Prerenderer:
    """Prerenders entries of one host build. Holds no per-render state."""

    def __init__(self, host: HostBuild, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self.logger: Any = logger.bind(component="prerenderer")
        self.invoker = NestedBuildInvoker(host, self.settings)
        self.sandbox_builder = SandboxBuilder(self.settings)
        self.executor = BundleExecutor(self.settings.library_name, self.settings.bundle_filename)
        self.resolver = ExportResolver()
        self.injector = Injector()

    async def render(
        self,
        request_id: str,
        template: Optional[str] = None,
        options: Optional[RenderOptions] = None,
        inject: bool = False,
    ) -> str:
        """
        Prerender an entry into HTML.

        Args:
            request_id: Identifies the render; partitions the nested build cache
            template: Template markup, or None to serialize a default document
            options: Render options
            inject: Whether the template carries a {{prerender}} marker

        Returns:
            Prerendered HTML, or a module exporting it in string mode

        Raises:
            PrerenderError: Any failure; no partial output is produced
        """
        options = options or RenderOptions()
        if template is None:
            template = options.template_content

        if options.disabled:
            return self._output(template or "", options)

        start_time = time.time()
        log = self.logger.bind(request_id=request_id)
        try:
            assets = await self.invoker.compile(request_id, resolve_entry_override(options.entry))
            sandbox = self.sandbox_builder.build(
                assets, template, options.document_url, request_id
            )
            raw = self.executor.execute(sandbox, assets.main_source, request_id)
            value = await self.resolver.resolve(raw, options.params, request_id)
            html = self.injector.merge(sandbox, value, template, inject)
        except PrerenderError as e:
            if e.request_id is None:
                e.request_id = request_id
            log.error("Prerender failed", error_type=type(e).__name__, error=e.message)
            raise

        log.info(
            "Prerender completed",
            html_length=len(html),
            processing_time=round(time.time() - start_time, 4),
        )
        return self._output(html, options)

    @staticmethod
    def _output(html: str, options: RenderOptions) -> str:
        return string_to_module(html) if options.string else html


async def prerender_loader(
    content: str,
    resource: str,
    host: HostBuild,
    options: Union[RenderOptions, Mapping[str, Any], None] = None,
    settings: Optional[Settings] = None,
    request_id: Optional[str] = None,
) -> str:
    """
    Prerender a single resource the way a build loader would.

    Script resources (``.py``) are prerendered into the default document.
    Markup resources become the template; a ``{{prerender}}`` marker in them
    sets the injection point and may name the entry to render.

    Args:
        content: Resource content
        resource: Resource path
        host: Host build the nested build runs inside
        options: Loader options
        settings: Settings override
        request_id: Render request id, defaulting to the resource path

    Returns:
        Prerendered HTML, or a module exporting it in string mode
    """
    if not isinstance(options, RenderOptions):
        options = RenderOptions.model_validate(dict(options or {}))

    if options.disabled:
        return Prerenderer._output(content, options)

    inject = False
    template = None
    if not SCRIPT_REG.search(resource):
        matches = find_marker(content)
        if matches:
            inject = True
            options = options.model_copy(update={"entry": matches.group(1)})
        template = content

    prerenderer = Prerenderer(host, settings)
    return await prerenderer.render(request_id or resource, template, options, inject)


def _coerce(value: str) -> Any:
    if value in ("true", "false"):
        return value == "true"
    if value == "null":
        return None
    return value


def parse_loader_query(query: str) -> RenderOptions:
    """
    Parse loader options from a query string.

    Accepts ``?{"string": true}`` (JSON) or ``?string&documentUrl=...``, where a
    bare name is true, ``-name`` is false and ``name[]=x`` collects a list.
    ``params`` values are decoded as JSON when possible.
    """
    query = query[1:] if query.startswith("?") else query
    if not query.strip():
        return RenderOptions()
    if query.lstrip().startswith("{"):
        return RenderOptions.model_validate(json.loads(query))

    data: Dict[str, Any] = {}
    for part in re.split(r"[,&]", query):
        if not part:
            continue
        name, sep, raw = part.partition("=")
        name = unquote_plus(name)
        if not sep:
            if name.startswith("-"):
                data[name[1:]] = False
            else:
                data[name.lstrip("+")] = True
            continue
        value = unquote_plus(raw)
        if name.endswith("[]"):
            items: List[Any] = data.setdefault(name[:-2], [])
            items.append(_coerce(value))
        elif name == "params":
            try:
                data[name] = json.loads(value)
            except json.JSONDecodeError:
                data[name] = value
        else:
            data[name] = _coerce(value)
    return RenderOptions.model_validate(data)
