"""Markdown notes with a sandboxed plugin runtime."""
