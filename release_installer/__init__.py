"""Install release binaries from download URLs into a per-version tool cache."""

__version__ = "0.4.0"
