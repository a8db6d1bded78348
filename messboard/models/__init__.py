# FILE: messboard/models/__init__.py
"""
Pydantic models for request/response validation
"""
from messboard.models.records import *
