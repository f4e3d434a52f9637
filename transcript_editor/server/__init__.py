"""HTTP server for the transcript editor."""
