"""Node access layer.

This package talks JSON-RPC to a live node and decodes its metadata.
It gives snapshot fetchers a narrow, fakeable client interface.
"""
