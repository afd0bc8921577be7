"""HTTP surface for the retrieval engine."""
