"""
Shared helpers: file I/O, hashing, template rendering and logging setup.
"""
