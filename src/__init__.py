"""Knowledge cards service."""
