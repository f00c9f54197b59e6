"""Dependency engine: crawler, analyzer, cache and the orchestrating Engine."""

from depsight.engine.analyzer import DependencyAnalyzer
from depsight.engine.cache import Cache
from depsight.engine.crawler import (
    ManifestCrawler,
    ManifestCrawlerOutput,
    ManifestCrawlerStepOutput,
    crawl_manifest,
)
from depsight.engine.engine import AnalyzeDependenciesOutcome, Engine

__all__ = [
    "AnalyzeDependenciesOutcome",
    "Cache",
    "DependencyAnalyzer",
    "Engine",
    "ManifestCrawler",
    "ManifestCrawlerOutput",
    "ManifestCrawlerStepOutput",
    "crawl_manifest",
]
