"""HTTP surface of the dev server."""
