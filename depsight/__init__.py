"""depsight: dependency status for Rust crates and repositories."""

__version__ = "0.1.0"
