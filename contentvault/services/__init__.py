"""Business services: store, oracle, vector index, pipeline and search."""
