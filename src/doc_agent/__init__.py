"""Doc-Agent - reviewable, reversible document edits from free-text commands."""

try:
    from importlib.metadata import version

    __version__ = version("doc-agent")
except Exception:
    __version__ = "0.0.0"  # Fallback for development/testing

__all__ = ["__version__"]
