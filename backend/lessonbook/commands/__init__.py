"""Command-line entry points run by an external scheduler."""
