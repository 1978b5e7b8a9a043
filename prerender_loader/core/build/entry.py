"""Entry specification helpers: relative paths and registration on a nested build."""

import os
from pathlib import Path
from typing import Union

from prerender_loader.core.build.host import NestedBuild
from prerender_loader.models.schemas import EntrySpec


def _relative(context: Path, entry: str, prefix: str) -> str:
    relative = os.path.relpath(os.path.abspath(os.path.join(context, entry)), context)
    return prefix + Path(relative).as_posix()


def convert_path_to_relative(
    context: Union[str, Path], entry: EntrySpec, prefix: str = ""
) -> EntrySpec:
    """Rewrite entry paths relative to the context, keeping the entry's shape."""
    context = Path(context)
    if isinstance(entry, list):
        return [_relative(context, item, prefix) for item in entry]
    if isinstance(entry, dict):
        return {
            name: (
                [_relative(context, item, prefix) for item in value]
                if isinstance(value, list)
                else _relative(context, value, prefix)
            )
            for name, value in entry.items()
        }
    return _relative(context, entry, prefix)


def apply_entry(entry: EntrySpec, build: NestedBuild) -> None:
    """String and list entries are named ``main``; maps register every name."""
    if isinstance(entry, (str, list)):
        build.add_entry("main", entry)
    elif isinstance(entry, dict):
        for name, item in entry.items():
            build.add_entry(name, item)
