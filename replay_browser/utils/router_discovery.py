import importlib
import inspect
import pkgutil

from fastapi import APIRouter, FastAPI
from loguru import logger


def _is_router(obj: object) -> bool:
    return isinstance(obj, APIRouter)


def discover_routers(package_name: str = "replay_browser.api") -> list[APIRouter]:
    """Import every module under ``package_name`` and collect the routers they define.

    Modules are visited in name order, so routes are registered in the same order on
    every start. A module that fails to import stops the app from starting.
    """
    package = importlib.import_module(package_name)
    package_path = getattr(package, "__path__", None)
    if not package_path:
        logger.warning(f"Cannot scan {package_name} for routers as it's not a package")
        return []

    routers: list[APIRouter] = []
    modules = sorted(
        pkgutil.walk_packages(package_path, prefix=f"{package_name}."), key=lambda m: m.name
    )
    for module_info in modules:
        module = importlib.import_module(module_info.name)
        found = [router for _, router in inspect.getmembers(module, _is_router)]
        if found:
            logger.info(f"Discovered {len(found)} router(s) in {module_info.name}")
        routers.extend(found)

    return routers


def register_routers(app: FastAPI, prefix: str = "/api") -> None:
    """Mount every router of the ``replay_browser.api`` package under ``prefix``."""
    for router in discover_routers():
        app.include_router(router, prefix=prefix)
