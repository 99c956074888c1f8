"""Shared infrastructure: configuration, logging, exceptions, metrics, schemas."""

from __future__ import annotations
