"""resolverSources - 签名解析器目录服务入口。"""

from fastapi import FastAPI
from fastapi.concurrency import asynccontextmanager, run_in_threadpool
from fastapi.routing import APIRoute
from loguru import logger
from starlette.middleware.cors import CORSMiddleware

from src.core.config import settings
from src.core.domain.exceptions import DomainException
from src.core.infrastructure.logging import setup_logging
from src.core.interfaces.http.exceptions import (
    domain_exception_handler,
    global_exception_handler,
)
from src.core.interfaces.http.routers import api_router
from src.modules.sources.application import dependencies as sources_app_deps
from src.modules.sources.infrastructure import dependencies as sources_infra_deps


def custom_generate_unique_id(route: APIRoute) -> str:
    """Generate unique operation IDs for OpenAPI."""
    if route.tags:
        return f"{route.tags[0]}-{route.name}"
    return route.name


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Application lifespan manager."""
    setup_logging()
    logger.info("Starting resolverSources...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")

    # 启动时加载所有目录源（阻塞 I/O 放到线程池）
    service = sources_infra_deps.get_source_catalog_service()
    loaded = await run_in_threadpool(service.load_all)
    failed = [item.name for item in loaded if not item.ok]
    logger.info(f"Loaded {len(loaded) - len(failed)}/{len(loaded)} sources")
    if failed:
        logger.warning(f"Sources failed to load: {', '.join(failed)}")

    yield

    sources_infra_deps.get_source_manager().fetcher.close()
    logger.info("Shutting down resolverSources...")


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="签名解析器目录：下载、校验、缓存与解析",
    version="0.1.0",
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    docs_url=f"{settings.API_V1_STR}/docs",
    redoc_url=f"{settings.API_V1_STR}/redoc",
    root_path=settings.ROOTPATH,
    generate_unique_id_function=custom_generate_unique_id,
    lifespan=lifespan,
)

# Dependency overrides (application -> infrastructure)
app.dependency_overrides[sources_app_deps.get_source_catalog_service] = (
    sources_infra_deps.get_source_catalog_service
)

# Exception handlers
app.add_exception_handler(DomainException, domain_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# CORS middleware
if settings.all_cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.all_cors_origins,
        allow_credentials=True,
        allow_methods=settings.CORS_ALLOW_METHODS,
        allow_headers=settings.CORS_ALLOW_HEADERS,
    )

app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/health", tags=["health"])
async def health_check():
    """Health check endpoint.

    - healthy: 所有目录源加载成功
    - degraded: 部分目录源不可用
    - unhealthy: 没有可用的目录源
    """
    service = sources_infra_deps.get_source_catalog_service()
    sources = service.list_sources()
    ok_count = sum(1 for item in sources if item.ok)

    if sources and ok_count == len(sources):
        overall_status = "healthy"
    elif ok_count:
        overall_status = "degraded"
    else:
        overall_status = "unhealthy"

    return {
        "status": overall_status,
        "environment": settings.ENVIRONMENT,
        "version": "0.1.0",
        "components": {
            item.name: {
                "status": "ok" if item.ok else "error",
                "entries": len(item.entries),
                "error": item.error.message if item.error else None,
            }
            for item in sources
        },
    }


@app.get("/", tags=["root"])
async def root():
    """Root endpoint."""
    return {
        "message": "Welcome to resolverSources API",
        "docs": f"{settings.API_V1_STR}/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.SERVER_PORT,
        reload=settings.ENVIRONMENT == "local",
    )
