"""Source module application dependencies."""

from typing import NoReturn

from src.modules.sources.application.services import SourceCatalogService


def _missing_dependency(name: str) -> NoReturn:
    raise RuntimeError(f"Missing dependency override for {name}")


def get_source_catalog_service() -> SourceCatalogService:
    _missing_dependency("SourceCatalogService")
