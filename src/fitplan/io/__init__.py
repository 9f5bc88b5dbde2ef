"""Persistence: serializers and the file-backed store."""
