"""Options for building process trees."""

from dataclasses import dataclass, field
from typing import Annotated, Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from proctree.models import ProcessNode

DEFAULT_EXCLUDED_PARENTS = frozenset({"explorer"})


def normalize_name(name: str) -> str:
    """Lowercase a process name and drop a trailing ``.exe``."""
    name = name.strip().lower()
    if name.endswith(".exe"):
        name = name[:-4]
    return name


@dataclass(slots=True, frozen=True)
class ParentExclusion:
    """
    Parents that children are never nested under.

    A node whose nominal parent matches stays at the forest root. Names are
    compared case-insensitively with any ``.exe`` suffix ignored. A node
    without a process handle is never excluded by name. A single name or pid
    may be given instead of a collection.
    """

    names: frozenset[str] = DEFAULT_EXCLUDED_PARENTS
    pids: frozenset[int] = frozenset()

    def __post_init__(self) -> None:
        names = {self.names} if isinstance(self.names, str) else self.names
        pids = {self.pids} if isinstance(self.pids, int) else self.pids
        object.__setattr__(self, "names", frozenset(normalize_name(n) for n in names))
        object.__setattr__(self, "pids", frozenset(pids))

    def excludes(self, node: ProcessNode) -> bool:
        if node.pid in self.pids:
            return True
        name = node.name
        return name is not None and normalize_name(name) in self.names


@dataclass(slots=True, frozen=True)
class FetchOptions:
    """Defaults used by ProcessInfoFetcher when a call does not override them."""

    exclusion: ParentExclusion = field(default_factory=ParentExclusion)
    exclude_services: bool = True
    requested_attributes: tuple[str, ...] = ()

    @classmethod
    def from_env(cls) -> "FetchOptions":
        """Build options from ``PROCTREE_*`` environment variables."""
        return Settings().to_options()


class Settings(BaseSettings):
    """
    Environment configuration, read from ``PROCTREE_*`` variables or ``.env``.

    List settings take comma separated values, e.g.
    ``PROCTREE_EXCLUDED_PARENTS=explorer,launchd``.
    """

    model_config = SettingsConfigDict(
        env_prefix="PROCTREE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    excluded_parents: Annotated[frozenset[str], NoDecode] = DEFAULT_EXCLUDED_PARENTS
    excluded_parent_pids: Annotated[frozenset[int], NoDecode] = frozenset()
    include_services: bool = False
    attributes: Annotated[tuple[str, ...], NoDecode] = ()
    log_level: Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"] = "WARNING"

    @field_validator("excluded_parents", "excluded_parent_pids", "attributes", mode="before")
    @classmethod
    def split_commas(cls, value):
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, value):
        return value.strip().upper() if isinstance(value, str) else value

    def to_options(self) -> FetchOptions:
        return FetchOptions(
            exclusion=ParentExclusion(names=self.excluded_parents, pids=self.excluded_parent_pids),
            exclude_services=not self.include_services,
            requested_attributes=self.attributes,
        )
