"""Falcon ASGI application exposing the dispatch trigger and subscriptions."""

from __future__ import annotations

from .app import AppDependencies, create_app

__all__ = ["AppDependencies", "create_app"]
