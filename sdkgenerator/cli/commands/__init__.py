"""Command implementations for the sdk-generator CLI."""
