"""Typed model of the cutler TOML document."""
from pathlib import Path
from typing import Any, Optional

from pydantic import AliasChoices, AnyUrl, BaseModel, ConfigDict, Field


class CommandSpec(BaseModel):
    """A ``[command.<name>]`` table."""
    run: str
    sudo: bool = False
    ensure_first: bool = False
    flag: bool = False
    required: list[str] = Field(default_factory=list)


class BrewSpec(BaseModel):
    """The ``[brew]`` table (parsed, not acted on by the engine)."""
    model_config = ConfigDict(extra="allow")

    formulae: list[str] = Field(default_factory=list)
    casks: list[str] = Field(default_factory=list)
    taps: list[str] = Field(default_factory=list)
    no_deps: bool = False


class RemoteSpec(BaseModel):
    """The ``[remote]`` table."""
    url: AnyUrl
    autosync: bool = False


class CutlerConfig(BaseModel):
    """Complete parsed configuration document.

    ``settings`` holds the raw ``[set]`` tree; it is flattened into
    preference domains by the config engine.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    lock: bool = False
    settings: dict[str, Any] = Field(default_factory=dict, alias="set")
    vars: dict[str, Any] = Field(default_factory=dict)
    commands: dict[str, CommandSpec] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("command", "commands"),
    )
    brew: Optional[BrewSpec] = None
    mas: Optional[dict[str, Any]] = None
    remote: Optional[RemoteSpec] = None

    # Where the document was loaded from (not part of the document)
    source_path: Optional[Path] = Field(default=None, exclude=True)
