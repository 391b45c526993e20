"""Privacy gateway scanner package.

Pattern definitions (versioned policy data) and the re2-backed scan engine.
"""
