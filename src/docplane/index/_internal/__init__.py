"""Internal implementation of the document index."""
