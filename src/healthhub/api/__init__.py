"""HTTP registration and metrics API."""
