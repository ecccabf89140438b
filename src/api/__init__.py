"""HTTP API for the knowledge-cards service."""
