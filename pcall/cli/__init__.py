"""Command-line interface for pcall."""
