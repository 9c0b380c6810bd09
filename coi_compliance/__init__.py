"""Certificate-of-insurance compliance tracking service."""
