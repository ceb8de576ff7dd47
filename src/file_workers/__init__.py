"""
File worker components.

Contains the queue consumer, the per-delivery processing state machine and
the transform registry that rewrites files (images to WebP) before storage.
"""
