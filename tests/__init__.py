"""blobwatch test suite."""
