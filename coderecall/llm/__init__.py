"""AI generation clients and response normalization."""
