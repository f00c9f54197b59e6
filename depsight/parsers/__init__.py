from depsight.parsers.manifest import parse_manifest_toml

__all__ = ["parse_manifest_toml"]
