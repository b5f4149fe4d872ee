"""Pure computation: introspection, snapshot extraction, hashing and diffing.

Nothing in this package touches the file system.
"""
