"""
Source registry: plugin discovery and pure URL construction.

Provider conventions (path layout, id choice, query parameters) live in
the plugins; callers only ask build(name, shape, args) and get a URL or
None when that source cannot serve that shape.
"""

import importlib
import os
import pkgutil
from typing import Optional
from urllib.parse import urlencode

from sources.base import BuildArgs, ContentShape, StreamSource

SOURCES_DIR = os.path.join(os.path.dirname(__file__), "sources")
REQUIRED_SHAPES = (ContentShape.MOVIE, ContentShape.TV)


class SourceRegistry:
    def __init__(self, sources: Optional[list[StreamSource]] = None):
        self._sources: dict[str, StreamSource] = {}
        for source in sources or []:
            self.register(source)

    def register(self, source: StreamSource) -> None:
        missing = [s.value for s in REQUIRED_SHAPES if not source.supports(s)]
        if missing:
            raise ValueError(f"Source '{source.name}' lacks required builders: {', '.join(missing)}")
        self._sources[source.name] = source

    def load_sources(self, settings=None) -> "SourceRegistry":
        """Dynamically load all source plugins from the sources/ directory."""
        for _, module_name, _ in pkgutil.iter_modules([SOURCES_DIR]):
            if module_name == "base":
                continue
            try:
                module = importlib.import_module(f"sources.{module_name}")
                if hasattr(module, "Source"):
                    self.register(module.Source(settings))
                    print(f"✓ Loaded source: {module.Source.name}")
            except Exception as e:
                print(f"✗ Failed to load source {module_name}: {e}")
        return self

    def get(self, name: str) -> Optional[StreamSource]:
        return self._sources.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._sources

    def names(self) -> list[str]:
        """All source names, in fallback priority order."""
        ordered = sorted(self._sources.values(), key=lambda s: (s.priority, s.name))
        return [s.name for s in ordered]

    def fallback_order(self, requested: Optional[str]) -> list[str]:
        names = self.names()
        if requested in self._sources:
            return [requested] + [n for n in names if n != requested]
        return names

    def build(self, name: str, shape: ContentShape, args: BuildArgs) -> Optional[str]:
        source = self._sources.get(name)
        if source is None:
            return None
        builder = source.builders.get(shape)
        if builder is None:
            return None

        url = source.base_url + builder(args)
        param_builder = source.query_params.get(shape)
        if param_builder:
            params = {k: v for k, v in param_builder(args).items() if v is not None}
            if params:
                url += ("&" if "?" in url else "?") + urlencode(params)
        return url

    def caches(self) -> list:
        return [c for s in self._sources.values() for c in s.caches()]

    def describe(self) -> list[dict]:
        return [
            {
                "name": s.name,
                "base_url": s.base_url,
                "shapes": [shape.value for shape in s.builders],
                "prefers_imdb": s.prefers_imdb,
                "direct": s.is_direct,
            }
            for s in (self._sources[n] for n in self.names())
        ]
