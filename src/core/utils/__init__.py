"""Core utility functions."""

from core.utils.json_serializers import json_dumps, json_serializer

__all__ = ["json_serializer", "json_dumps"]
