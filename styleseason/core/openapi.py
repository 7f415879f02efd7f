"""OpenAPI metadata and customization utilities.

Enriches the generated OpenAPI schema with:
- Tags metadata
- 429 responses on operations gated by ``enforce_rate_limit``
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI
from fastapi.routing import APIRoute

from styleseason.core.rate_limit import RATE_LIMIT_MARKER

_TOO_MANY_REQUESTS = {
    "description": "Rate limit exceeded. Retry after the number of seconds in Retry-After.",
    "headers": {
        "Retry-After": {
            "description": "Seconds until the caller is unblocked.",
            "schema": {"type": "integer"},
        }
    },
}


def _rate_limited_operations(app: FastAPI) -> set[tuple[str, str]]:
    """Return (path, method) pairs whose route depends on enforce_rate_limit."""

    operations: set[tuple[str, str]] = set()
    for route in app.routes:
        if not isinstance(route, APIRoute):
            continue
        gated = any(
            getattr(dep.dependency, RATE_LIMIT_MARKER, None) for dep in route.dependencies
        )
        if gated:
            operations.update((route.path_format, method.lower()) for method in route.methods)
    return operations


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and 429 responses."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        desired_tags = [
            {
                "name": "Rate limits",
                "description": "Inspect policies and request rate limit decisions.",
            },
            {
                "name": "Health",
                "description": "Liveness and readiness checks.",
            },
        ]
        for tag in desired_tags:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        gated = _rate_limited_operations(app)
        for path, methods in schema.get("paths", {}).items():
            for method, method_obj in methods.items():
                if (path, method) in gated and isinstance(method_obj, dict):
                    method_obj.setdefault("responses", {}).setdefault("429", _TOO_MANY_REQUESTS)

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
