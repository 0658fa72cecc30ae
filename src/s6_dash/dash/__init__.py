"""Textual dashboard over an s6 scan directory."""
