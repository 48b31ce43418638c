"""Snapshot acquisition.

This package enumerates a node's full key space at one block and streams it
into a JSON cache file that the genesis merger consumes.
"""
