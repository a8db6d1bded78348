# FILE: messboard/deps.py
"""
Request-scoped access to the components wired in create_app
"""
from fastapi import Request

from messboard.services.blob_store import BlobStore
from messboard.services.lifecycle import LifecycleEngine
from messboard.services.notifier import BroadcastHub


def get_engine(request: Request) -> LifecycleEngine:
    return request.app.state.engine


def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blob_store


def get_hub(request: Request) -> BroadcastHub:
    return request.app.state.hub
