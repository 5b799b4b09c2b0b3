"""bulkops command-line interface."""
