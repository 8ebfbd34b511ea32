"""ForgeLens - local git repository introspection and merge conflict analysis."""

__version__ = "0.1.0"
