"""shortlink: a URL shortening service with owner-gated links and redirect analytics."""

__version__ = "1.0.0"
