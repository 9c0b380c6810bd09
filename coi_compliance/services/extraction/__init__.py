"""Client for the external certificate extraction service."""
