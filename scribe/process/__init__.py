"""Topic batching, duplicate suppression, and shared similarity helpers."""
