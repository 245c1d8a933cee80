from __future__ import annotations

import functools
import inspect
from collections.abc import Callable
from typing import Any, get_type_hints

from fastapi import APIRouter, Depends

from couponhub.api.deps import legacy_tenant_context, path_tenant_context
from couponhub.services.tenancy import TenantContext


def _bind_context(handler: Callable[..., Any], dependency: Callable[..., TenantContext]) -> Callable[..., Any]:
    """Copy `handler` with its TenantContext parameter wired to `dependency`.

    Parameters become keyword-only so the injected default never breaks ordering.
    """
    hints = get_type_hints(handler, include_extras=True)
    signature = inspect.signature(handler)
    parameters = []
    context_bound = False
    for parameter in signature.parameters.values():
        annotation = hints.get(parameter.name, parameter.annotation)
        if annotation is TenantContext:
            parameter = parameter.replace(default=Depends(dependency))
            context_bound = True
        parameters.append(parameter.replace(annotation=annotation, kind=inspect.Parameter.KEYWORD_ONLY))
    if not context_bound:
        raise TypeError(f"{handler.__qualname__} must accept a TenantContext parameter")

    @functools.wraps(handler)
    def endpoint(**kwargs: Any) -> Any:
        return handler(**kwargs)

    endpoint.__signature__ = signature.replace(  # type: ignore[attr-defined]
        parameters=parameters,
        return_annotation=hints.get("return", signature.return_annotation),
    )
    return endpoint


class DualRouteRegistrar:
    """Registers one handler under `/api/{area}` and `/t/{tenant_slug}/api/{area}`.

    The legacy variant authenticates and infers the tenant from the session or
    referer; the tenant-scoped variant loads the tenant from the slug and rejects
    sessions that belong to another tenant. Both hand the same TenantContext shape
    to the shared handler body.
    """

    def __init__(self, area: str, *, role: str, tags: list[str] | None = None) -> None:
        self.area = area
        self.role = role
        self.legacy_router = APIRouter(prefix=f"/api/{area}", tags=tags or [area])
        self.tenant_router = APIRouter(prefix=f"/t/{{tenant_slug}}/api/{area}", tags=tags or [area])

    @property
    def routers(self) -> tuple[APIRouter, APIRouter]:
        return self.legacy_router, self.tenant_router

    def register(
        self,
        path: str,
        method: str,
        handler: Callable[..., Any],
        *,
        role: str | None = None,
        **route_kwargs: Any,
    ) -> Callable[..., Any]:
        effective_role = role or self.role
        methods = [method.upper()]
        self.legacy_router.add_api_route(
            path,
            _bind_context(handler, legacy_tenant_context(effective_role)),
            methods=methods,
            name=f"legacy:{handler.__name__}",
            **route_kwargs,
        )
        self.tenant_router.add_api_route(
            path,
            _bind_context(handler, path_tenant_context(effective_role)),
            methods=methods,
            name=f"tenant:{handler.__name__}",
            **route_kwargs,
        )
        return handler

    def route(self, path: str, method: str, **route_kwargs: Any) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        def decorator(handler: Callable[..., Any]) -> Callable[..., Any]:
            return self.register(path, method, handler, **route_kwargs)

        return decorator

    def get(self, path: str, **route_kwargs: Any):
        return self.route(path, "GET", **route_kwargs)

    def post(self, path: str, **route_kwargs: Any):
        return self.route(path, "POST", **route_kwargs)

    def put(self, path: str, **route_kwargs: Any):
        return self.route(path, "PUT", **route_kwargs)

    def delete(self, path: str, **route_kwargs: Any):
        return self.route(path, "DELETE", **route_kwargs)
