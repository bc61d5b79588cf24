"""Source API routes."""

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from src.core.interfaces.http.response import ApiResponse
from src.modules.sources.application.dependencies import get_source_catalog_service
from src.modules.sources.application.services import LoadedSource, SourceCatalogService
from src.modules.sources.domain.entities import CatalogEntry
from src.modules.sources.interfaces.schemas import (
    RefreshRecordResponse,
    ServerEntryResponse,
    SourceFormat,
    SourceResponse,
)
from src.modules.stamps.domain.entities import ServerInformalProperties

router = APIRouter(prefix="/sources", tags=["sources"])


def _to_source_response(loaded: LoadedSource) -> SourceResponse:
    return SourceResponse(
        name=loaded.name,
        url=loaded.config.url,
        format=SourceFormat(loaded.config.format),
        loaded=loaded.ok,
        entries_count=len(loaded.entries),
        error=loaded.error.message if loaded.error else None,
        error_code=loaded.error.error_code if loaded.error else None,
        loaded_at=loaded.loaded_at,
        refresh_records=[
            RefreshRecordResponse(
                url=record.url,
                cache_file=record.cache_file,
                next_eligible=record.next_eligible,
            )
            for record in loaded.refresh_records
        ],
    )


def _to_entry_response(entry: CatalogEntry) -> ServerEntryResponse:
    props = entry.stamp.props
    return ServerEntryResponse(
        name=entry.name,
        stamp=entry.stamp.to_string(),
        protocol=entry.stamp.protocol.name,
        dnssec=ServerInformalProperties.DNSSEC in props,
        no_log=ServerInformalProperties.NO_LOG in props,
    )


@router.get(
    "",
    response_model=ApiResponse[list[SourceResponse]],
    summary="获取目录源列表",
)
async def list_sources(
    service: SourceCatalogService = Depends(get_source_catalog_service),
) -> ApiResponse[list[SourceResponse]]:
    """List configured sources and their load status."""
    return ApiResponse.success(
        data=[_to_source_response(loaded) for loaded in service.list_sources()]
    )


@router.get(
    "/{name}/servers",
    response_model=ApiResponse[list[ServerEntryResponse]],
    summary="获取目录中的服务器",
)
async def list_servers(
    name: str,
    service: SourceCatalogService = Depends(get_source_catalog_service),
) -> ApiResponse[list[ServerEntryResponse]]:
    """List the entries parsed from a source."""
    loaded = await run_in_threadpool(service.get, name)
    if loaded.error is not None:
        raise loaded.error
    return ApiResponse.success(
        data=[_to_entry_response(entry) for entry in loaded.entries],
        meta={"total": len(loaded.entries)},
    )


@router.post(
    "/{name}/reload",
    response_model=ApiResponse[SourceResponse],
    summary="重新加载目录源",
)
async def reload_source(
    name: str,
    service: SourceCatalogService = Depends(get_source_catalog_service),
) -> ApiResponse[SourceResponse]:
    """Re-acquire a source from cache or network."""
    loaded = await run_in_threadpool(service.reload, name)
    return ApiResponse.success(
        data=_to_source_response(loaded),
        message="Source reloaded" if loaded.ok else "Source reload failed",
    )
