"""
Injector / Serializer
=====================

Merges resolved markup into the template, or serializes the sandbox
document. Three outcomes, chosen by an explicit branch:

- explicit value with a template: insert at the injection anchor (or the
  end of ``<body>``) and serialize the document. The sandbox document was
  parsed from the template, so direct DOM writes made during execution are
  kept alongside the returned markup.
- placeholder without a value: substitute the marker in the original
  template text and return that text as is.
- otherwise: serialize the whole sandbox document.
"""

import json
import re
import warnings
from typing import Any, Optional

from bs4 import BeautifulSoup, MarkupResemblesLocatorWarning

from prerender_loader.config.logging import get_logger
from prerender_loader.core.sandbox.environment import SandboxEnvironment
from prerender_loader.core.sandbox.placeholder import replace_marker

logger = get_logger(__name__)

DOCTYPE_REG = re.compile(r"^<!DOCTYPE ", re.IGNORECASE | re.MULTILINE)


def ensure_doctype(html: str) -> str:
    """Prefix ``<!DOCTYPE html>`` unless a doctype declaration is already present."""
    if not DOCTYPE_REG.search(html):
        html = f"<!DOCTYPE html>{html}"
    return html


def string_to_module(html: str) -> str:
    """Wrap a string up into a module that exports it."""
    return 'exports["default"] = ' + json.dumps(html)


def inject_into_template(template: str, value: Optional[str]) -> str:
    """Substitute the placeholder marker in the template text."""
    return replace_marker(template, value or "")


class Injector:
    """Produces the final HTML for a render."""

    def __init__(self) -> None:
        self.logger: Any = logger.bind(component="injector")

    def merge(
        self,
        sandbox: SandboxEnvironment,
        value: Optional[str],
        template: Optional[str] = None,
        inject: bool = False,
    ) -> str:
        """
        Merge a resolved value into the output.

        Args:
            sandbox: Environment the bundle ran in
            value: Resolved export, or None
            template: Original template text, if one was supplied
            inject: Whether the template carried a placeholder marker

        Returns:
            Final HTML
        """
        if value is not None and template:
            self.insert_markup(sandbox, value)
            path = "explicit"
        elif inject and template is not None:
            self.logger.debug("Merged output", path="marker")
            return inject_into_template(template, value)
        else:
            path = "document"

        self.logger.debug("Merged output", path=path)
        return self.serialize(sandbox)

    def insert_markup(self, sandbox: SandboxEnvironment, markup: str) -> None:
        """Insert a markup fragment at the injection anchor, or at the end of the body."""
        document = sandbox.document
        with warnings.catch_warnings():
            # returned markup may be plain text that looks like a URL or path
            warnings.simplefilter("ignore", MarkupResemblesLocatorWarning)
            fragment = BeautifulSoup(markup or "", "html.parser")

        anchor = sandbox.take_anchor()
        if anchor is not None:
            parent, next_sibling = anchor.parent, anchor.next_sibling
        else:
            parent, next_sibling = document.body or document.html or document, None

        for child in list(fragment.contents):
            if next_sibling is not None and next_sibling.parent is parent:
                next_sibling.insert_before(child)
            else:
                parent.append(child)

    def serialize(self, sandbox: SandboxEnvironment) -> str:
        return ensure_doctype(str(sandbox.document))
