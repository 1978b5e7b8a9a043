"""
Sandbox Environment
===================

Builds the simulated browser document a bundle is executed in: the template
(or a minimal default document) parsed into a BeautifulSoup tree, a window
object carrying the browser-API shims, and the module loader.
"""

import builtins
from dataclasses import dataclass
from typing import Any, Dict, Optional

from bs4 import BeautifulSoup
from bs4.element import PageElement, Tag
from pydantic import AnyUrl, TypeAdapter, ValidationError

from prerender_loader.config.logging import get_logger
from prerender_loader.config.settings import Settings, get_settings
from prerender_loader.core.errors import SandboxInitError
from prerender_loader.core.sandbox.loader import ModuleLoader
from prerender_loader.core.sandbox.placeholder import PRERENDER_REG
from prerender_loader.core.sandbox.shims import (
    AnimationFrames,
    CustomElementRegistry,
    EventTarget,
    Location,
    MessagePort,
    Navigator,
    match_media,
)
from prerender_loader.models.schemas import CompiledAssetSet

logger = get_logger(__name__)

DEFAULT_DOCUMENT = "<!DOCTYPE html><html><head></head><body></body></html>"

_url_adapter = TypeAdapter(AnyUrl)


@dataclass
class InjectionAnchor:
    """Where returned markup goes: before ``next_sibling`` inside ``parent``."""

    parent: Tag
    next_sibling: Optional[PageElement]


class Window:
    """The sandbox ``window``: document, location, navigator and shims."""

    def __init__(self, document: BeautifulSoup, url: str, prerender_flag: bool = True) -> None:
        self.document = document
        self.location = Location(url)
        self.navigator = Navigator()
        self.custom_elements = CustomElementRegistry()
        self.MessagePort = MessagePort
        self.EventTarget = EventTarget
        self.match_media = match_media
        self.PRERENDER = prerender_flag

        frames = AnimationFrames()
        self.request_animation_frame = frames.request
        self.cancel_animation_frame = frames.cancel

        self.require: Any = None

    def globals(self) -> Dict[str, Any]:
        """Names visible to bundle code as globals, like properties of a browser window."""
        return {
            "__builtins__": builtins,
            "window": self,
            "self": self,
            "document": self.document,
            "location": self.location,
            "navigator": self.navigator,
            "custom_elements": self.custom_elements,
            "MessagePort": self.MessagePort,
            "EventTarget": self.EventTarget,
            "match_media": self.match_media,
            "request_animation_frame": self.request_animation_frame,
            "cancel_animation_frame": self.cancel_animation_frame,
            "require": self.require,
            "PRERENDER": self.PRERENDER,
        }


@dataclass
class SandboxEnvironment:
    """One render's document, window, global scope and module loader."""

    window: Window
    scope: Dict[str, Any]
    loader: ModuleLoader
    anchor: Optional[InjectionAnchor] = None

    @property
    def document(self) -> BeautifulSoup:
        return self.window.document

    def require(self, module_id: str) -> Any:
        return self.loader.require(module_id)

    def take_anchor(self) -> Optional[InjectionAnchor]:
        """Hand out the injection anchor once; later calls get None."""
        anchor, self.anchor = self.anchor, None
        return anchor


class SandboxBuilder:
    """Creates a fresh SandboxEnvironment for each render."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self.logger: Any = logger.bind(component="sandbox")

    def build(
        self,
        assets: CompiledAssetSet,
        template: Optional[str] = None,
        document_url: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> SandboxEnvironment:
        """
        Parse the template and install shims and the module loader.

        Args:
            assets: Compiled assets backing ``require``
            template: Template markup, or None for the default document
            document_url: URL reported by ``window.location``
            request_id: Render request identifier, for diagnostics

        Returns:
            A new SandboxEnvironment

        Raises:
            SandboxInitError: If the URL is invalid or the template cannot be parsed
        """
        url = self._validate_url(document_url or self.settings.document_url, request_id)
        document = self._parse_template(template, request_id)
        anchor = self._take_placeholder(document)

        window = Window(document, url)
        scope = window.globals()
        loader = ModuleLoader(assets=assets, scope=scope, request_id=request_id)
        window.require = loader.require
        scope["require"] = loader.require

        self.logger.debug(
            "Sandbox ready",
            request_id=request_id,
            url=url,
            has_template=template is not None,
            has_anchor=anchor is not None,
        )
        return SandboxEnvironment(window=window, scope=scope, loader=loader, anchor=anchor)

    def _validate_url(self, url: str, request_id: Optional[str]) -> str:
        try:
            parsed = _url_adapter.validate_python(url)
        except ValidationError as e:
            raise SandboxInitError(f"Invalid document URL {url!r}: {e}", request_id) from e
        if not parsed.host:
            raise SandboxInitError(f"Invalid document URL {url!r}: missing host", request_id)
        return url

    def _parse_template(self, template: Optional[str], request_id: Optional[str]) -> BeautifulSoup:
        if template is not None and not isinstance(template, str):
            raise SandboxInitError(
                f"Template must be markup text, got {type(template).__name__}", request_id
            )
        markup = template or DEFAULT_DOCUMENT
        markup = PRERENDER_REG.sub(
            lambda _: f'<div id="{self.settings.anchor_id}"></div>', markup, count=1
        )
        try:
            document = BeautifulSoup(markup, "lxml")
        except Exception as e:
            raise SandboxInitError(f"Template could not be parsed: {e}", request_id) from e
        if document.find("html") is None:
            raise SandboxInitError("Template did not produce a document element", request_id)
        return document

    def _take_placeholder(self, document: BeautifulSoup) -> Optional[InjectionAnchor]:
        placeholder = document.find(id=self.settings.anchor_id)
        if placeholder is None:
            return None
        anchor = InjectionAnchor(parent=placeholder.parent, next_sibling=placeholder.next_sibling)
        placeholder.decompose()
        return anchor
