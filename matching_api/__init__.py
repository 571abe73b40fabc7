"""Phone authentication and SMS notification backend for Matching."""
