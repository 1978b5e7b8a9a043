"""
Placeholder Marker
==================

Locates ``{{prerender}}`` / ``{{prerender: ./entry}}`` markers in template text.
"""

import re
from typing import List, Optional, Union

# Searches for fields of the form {{prerender}} or {{prerender:./some/module}}
PRERENDER_REG = re.compile(r"\{\{prerender(?::\s*([^}]+?)\s*)?\}\}")


def find_marker(template: str) -> Optional[re.Match]:
    """Return the first placeholder marker in the template, if any."""
    return PRERENDER_REG.search(template)


def resolve_entry_override(entry: Union[str, List[str], None]) -> Optional[str]:
    """Trimmed entry override; when several are given the last non-empty one wins."""
    if entry is None:
        return None
    candidates = [entry] if isinstance(entry, str) else list(entry)
    for candidate in reversed(candidates):
        if candidate and candidate.strip():
            return candidate.strip()
    return None


def replace_marker(template: str, replacement: str) -> str:
    """Replace the first marker in the template text, leaving the rest untouched."""
    return PRERENDER_REG.sub(lambda _: replacement, template, count=1)
