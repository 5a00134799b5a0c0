"""Configuration, errors, clock and shared vocabularies."""
