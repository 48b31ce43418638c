"""End-to-end fork runs built from node state and local artifacts."""
