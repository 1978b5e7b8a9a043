"""
Pydantic Models and Schemas
===========================

Core data models for render options, nested build requests and compiled assets.
"""

from typing import Optional, List, Dict, Any, Union, Literal
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


EntrySpec = Union[str, List[str], Dict[str, Union[str, List[str]]]]


# Enums
class ModuleState(str, Enum):
    """Evaluation state of a sandbox module."""
    UNINITIALIZED = "uninitialized"
    EVALUATING = "evaluating"
    DONE = "done"


class ExportKind(str, Enum):
    """Shape of an entry export, determined once by inspection."""
    MISSING = "missing"
    COMPOSITE = "composite"
    CALLABLE = "callable"
    AWAITABLE = "awaitable"
    LITERAL = "literal"


# Render Models
class RenderOptions(BaseModel):
    """Options for a single prerender."""
    string: bool = Field(False, description="Output a module exporting the HTML string")
    disabled: bool = Field(False, description="Bypass prerendering entirely")
    document_url: Optional[str] = Field(
        None, alias="documentUrl", description="URL of the simulated document; defaults to settings"
    )
    params: Any = Field(None, description="Argument passed to an exported function")
    entry: Optional[Union[str, List[str]]] = Field(
        None, description="Entry override, usually taken from {{prerender:...}}"
    )
    template_content: Optional[str] = Field(
        None, alias="templateContent", description="Markup the prerendered content is merged into"
    )

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def accept_as_string(cls, data: Any) -> Any:
        """Treat the loader form ``as=string`` like ``string=True``."""
        if isinstance(data, dict) and data.get("as") == "string":
            data = {k: v for k, v in data.items() if k != "as"}
            data["string"] = True
        return data

    @field_validator("document_url", mode="before")
    @classmethod
    def empty_document_url(cls, v: Any) -> Any:
        """An empty URL means the configured default."""
        return v or None


# Nested Build Models
class Diagnostic(BaseModel):
    """Message reported by a nested build."""
    severity: Literal["error", "warning"] = Field("error", description="Diagnostic severity")
    message: str = Field(..., description="Short description")
    details: str = Field("", description="Full diagnostic detail")
    module: Optional[str] = Field(None, description="Module the diagnostic refers to")

    @model_validator(mode="after")
    def fill_details(self) -> "Diagnostic":
        if not self.details:
            self.details = self.message
        return self


class BuildRequest(BaseModel):
    """Description of one entry-scoped nested build."""
    request_id: str = Field(..., min_length=1, description="Originating render request")
    context: Path = Field(..., description="Build context directory")
    entry: EntrySpec = Field(..., description="Entry module(s) relative to the context")
    library_name: str = Field("PRERENDER_RESULT", description="Global bound to the entry exports")
    bundle_filename: str = Field("ssr-bundle.py", description="Name of the main bundle asset")
    plugins: List[Any] = Field(default_factory=list, description="Carried-over host plugins")
    definitions: Dict[str, Any] = Field(default_factory=dict, description="Compile-time defines")

    model_config = ConfigDict(arbitrary_types_allowed=True)


class Compilation(BaseModel):
    """Raw outcome of a nested build, as reported by the host."""
    name: str = Field(..., description="Nested build name")
    assets: Dict[str, str] = Field(default_factory=dict, description="Filename to source text")
    errors: List[Diagnostic] = Field(default_factory=list)
    warnings: List[Diagnostic] = Field(default_factory=list)


class CompiledAssetSet(BaseModel):
    """Compiled sources produced by a successful nested build."""
    assets: Dict[str, str] = Field(..., description="Filename to source text")
    main: str = Field(..., description="Filename of the main bundle")
    warnings: List[Diagnostic] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_main(self) -> "CompiledAssetSet":
        if self.main not in self.assets:
            raise ValueError(f"Main bundle {self.main!r} is not among the compiled assets")
        return self

    def __contains__(self, name: object) -> bool:
        return name in self.assets

    def source(self, name: str) -> Optional[str]:
        """Source text of an asset, or None when it was not emitted."""
        return self.assets.get(name)

    @property
    def main_source(self) -> str:
        return self.assets[self.main]
