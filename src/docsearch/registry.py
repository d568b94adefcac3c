"""Framework registry.

Each entry describes where a framework's documentation comes from. The
shape of an entry depends on its source ``type``, so entries are a tagged
union and every consumer matches on the variant.
"""

import json
import logging
from pathlib import Path
from typing import Annotated, Literal, Union, assert_never

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

logger = logging.getLogger(__name__)


class _SourceBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    docs_url: str | None = Field(None, alias="docsUrl", description="Documentation entry page")
    api_docs_url: str | None = Field(None, alias="apiDocsUrl")
    docs_sections: list[str] = Field(default_factory=list, alias="docsSections")


class NpmSource(_SourceBase):
    """Framework published on npm."""

    type: Literal["npm"] = "npm"
    package_name: str = Field(..., alias="packageName")


class PythonSource(_SourceBase):
    """Framework published on PyPI."""

    type: Literal["python"] = "python"
    python_package: str = Field(..., alias="pythonPackage")


class GithubSource(_SourceBase):
    """Framework versioned by GitHub releases."""

    type: Literal["github"] = "github"
    repo: str = Field(..., description="owner/name")
    github_docs_dir: str | None = Field(None, alias="githubDocsDir")


class CustomSource(_SourceBase):
    """Framework whose latest version is read from an arbitrary URL."""

    type: Literal["custom"] = "custom"
    latest_version_url: str | None = Field(None, alias="latestVersionUrl")


FrameworkSource = Annotated[
    Union[NpmSource, PythonSource, GithubSource, CustomSource],
    Field(discriminator="type"),
]

_registry_adapter = TypeAdapter(dict[str, FrameworkSource])


def describe_source(source: FrameworkSource) -> str:
    """Human-readable origin of a framework's documentation."""
    match source:
        case NpmSource():
            return f"npm package {source.package_name}"
        case PythonSource():
            return f"PyPI package {source.python_package}"
        case GithubSource():
            return f"GitHub repository {source.repo}"
        case CustomSource():
            return f"custom source {source.docs_url or 'without a docs URL'}"
        case _:
            assert_never(source)


def latest_version_url(source: FrameworkSource) -> str | None:
    """URL that reports the latest released version, if the source has one."""
    match source:
        case NpmSource():
            return f"https://registry.npmjs.org/{source.package_name}"
        case PythonSource():
            return f"https://pypi.org/pypi/{source.python_package}/json"
        case GithubSource():
            return f"https://api.github.com/repos/{source.repo}/releases/latest"
        case CustomSource():
            return source.latest_version_url
        case _:
            assert_never(source)


DEFAULT_FRAMEWORKS: dict[str, FrameworkSource] = {
    "react": NpmSource(package_name="react", docs_url="https://react.dev/reference"),
    "vue": NpmSource(package_name="vue", docs_url="https://vuejs.org/guide"),
    "angular": NpmSource(package_name="@angular/core", docs_url="https://angular.io/docs"),
    "svelte": NpmSource(package_name="svelte", docs_url="https://svelte.dev/docs"),
    "express": NpmSource(
        package_name="express", docs_url="https://expressjs.com/en/4x/api.html"
    ),
    "next": NpmSource(package_name="next", docs_url="https://nextjs.org/docs"),
    "hono": NpmSource(
        package_name="hono",
        docs_url="https://hono.dev/docs/top",
        docs_sections=["top", "concepts", "api", "helpers", "middleware", "guides"],
    ),
    "langchain": PythonSource(
        python_package="langchain",
        docs_url="https://python.langchain.com/docs/get_started",
        api_docs_url="https://api.python.langchain.com/en/latest/",
    ),
    "fastapi": PythonSource(
        python_package="fastapi",
        docs_url="https://fastapi.tiangolo.com/",
        docs_sections=["tutorial", "advanced", "reference"],
    ),
}


class FrameworkRegistry:
    """Framework name to documentation source, persisted as JSON."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._entries: dict[str, FrameworkSource] = dict(DEFAULT_FRAMEWORKS)

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, name: str) -> FrameworkSource | None:
        return self._entries.get(name.lower())

    def items(self) -> list[tuple[str, FrameworkSource]]:
        return sorted(self._entries.items())

    def register(self, name: str, source: FrameworkSource) -> None:
        self._entries[name.lower()] = source
        logger.info(f"Registered framework {name} ({describe_source(source)})")

    def load(self) -> int:
        """Load entries from disk on top of the defaults.

        A missing file keeps the defaults; an invalid file is logged and
        ignored.

        Returns:
            Number of entries in the registry.
        """
        if not self._path.exists():
            return len(self._entries)
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            self._entries.update(_registry_adapter.validate_python(data))
        except (OSError, ValueError, ValidationError) as e:
            logger.error(f"Failed to load framework registry from {self._path}: {e}")
        return len(self._entries)

    def save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = _registry_adapter.dump_python(self._entries, mode="json", by_alias=True)
        self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
