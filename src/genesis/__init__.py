"""Genesis forking.

This package builds chain-spec templates, selects which live state to keep,
and merges it with fixed overrides into the forked genesis document.
"""
