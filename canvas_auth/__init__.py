"""Server-side verification of Canvas signed requests."""
