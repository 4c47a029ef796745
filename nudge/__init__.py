import importlib.metadata

try:
    _detected_version = importlib.metadata.version("nudge")
    __version__ = _detected_version if _detected_version else "0.0.0-dev"
except importlib.metadata.PackageNotFoundError:
    # Fallback for dev environments where metadata might not be available
    __version__ = "0.0.0-dev"
