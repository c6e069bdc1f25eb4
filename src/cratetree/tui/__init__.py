"""Textual TUI for cratetree."""
