"""
Command Line Interface
======================

Prerender an application described by a YAML or JSON build file::

    # prerender.yaml
    context: ./app
    entry: ./main.py
    plugins: [style-extract]

    prerender prerender.yaml --template index.html --output dist/index.html
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml  # type: ignore[import-untyped]

from prerender_loader.config.logging import get_logger, setup_logging
from prerender_loader.config.settings import get_settings
from prerender_loader.core.build.bundler import PythonBundler
from prerender_loader.core.build.host import StyleExtractPlugin
from prerender_loader.core.errors import PrerenderError
from prerender_loader.core.rendering.pipeline import prerender_loader

logger = get_logger(__name__)

PLUGINS = {
    "style-extract": StyleExtractPlugin,
}


class BuildConfigError(Exception):
    """Raised when the build file is missing or malformed."""

    pass


def load_build_config(path: Path) -> Dict[str, Any]:
    """Load a build description; relative paths are resolved against its directory."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise BuildConfigError(f"Cannot read build file {path}: {e}") from e

    try:
        data = json.loads(text) if path.suffix == ".json" else yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise BuildConfigError(f"Invalid build file {path}: {e}") from e

    if not isinstance(data, dict) or "entry" not in data:
        raise BuildConfigError(f"Build file {path} must define an 'entry'")

    data["context"] = str((path.parent / data.get("context", ".")).resolve())
    unknown = [name for name in data.get("plugins", []) if name not in PLUGINS]
    if unknown:
        raise BuildConfigError(f"Unknown plugins: {', '.join(unknown)}")
    return data


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="prerender", description="Prerender a Python client application to static HTML"
    )
    parser.add_argument("build", type=Path, help="YAML or JSON build file")
    parser.add_argument("--template", type=Path, help="HTML template (default: empty document)")
    parser.add_argument("--output", type=Path, help="Write HTML here instead of stdout")
    parser.add_argument("--string", action="store_true", help="Output a module exporting the HTML")
    parser.add_argument("--disabled", action="store_true", help="Skip prerendering")
    parser.add_argument("--document-url", help="URL reported by window.location")
    parser.add_argument("--params", help="JSON value passed to an exported function")
    parser.add_argument("--request-id", help="Render request id (default: the template path)")
    return parser


async def run(args: argparse.Namespace) -> str:
    config = load_build_config(args.build)
    host = PythonBundler(
        config["context"],
        config["entry"],
        plugins=[PLUGINS[name]() for name in config.get("plugins", [])],
    )

    options: Dict[str, Any] = {"string": args.string, "disabled": args.disabled}
    if args.document_url:
        options["documentUrl"] = args.document_url
    if args.params is not None:
        options["params"] = json.loads(args.params)

    if args.template:
        resource = str(args.template)
        content = args.template.read_text(encoding="utf-8")
    else:
        entry = config["entry"]
        resource = entry if isinstance(entry, str) else f"{args.build}.py"
        content = ""

    return await prerender_loader(
        content, resource, host, options, request_id=args.request_id
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = create_parser().parse_args(argv)
    setup_logging()
    settings = get_settings()

    try:
        html = asyncio.run(run(args))
    except (BuildConfigError, PrerenderError, json.JSONDecodeError) as e:
        logger.error("Prerender failed", error=str(e))
        print(f"error: {e}", file=sys.stderr)
        return 1

    output = args.output or (Path(settings.output_path) if settings.output_path else None)
    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(html, encoding="utf-8")
        logger.info("Wrote prerendered HTML", path=str(output), html_length=len(html))
    else:
        sys.stdout.write(html)
    return 0


if __name__ == "__main__":
    sys.exit(main())
