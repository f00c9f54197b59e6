"""Error taxonomy shared by the engine, parsers and interactors."""


class DepsightError(Exception):
    """Base exception."""


class ValidationError(DepsightError):
    """Malformed crate name, repository path or version requirement (-> HTTP 400)."""


class NotFoundError(DepsightError):
    """Manifest, crate or release absent upstream (-> HTTP 404)."""


class TransportError(DepsightError):
    """Network or HTTP failure talking to an upstream (-> HTTP 502)."""


class DecodeError(DepsightError):
    """Upstream payload could not be decoded (-> HTTP 502)."""


class ManifestParseError(DecodeError):
    """A Cargo.toml manifest is not valid TOML or not a valid manifest."""
