"""
Talofix 物业报修平台 - 后端主入口

职责:
- 用户登录与档案
- 租户创建与级联删除
- 四类邀请码的生成、校验与兑换
- 故障报修与状态流转
- 公告与附件
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response
from starlette.types import Scope
from sqlalchemy.exc import SQLAlchemyError

from talofix import __version__
from talofix.adapters.blobs import META_SUFFIX
from talofix.api import router as api_router
from talofix.core.config import settings
from talofix.core.errors import InvalidArgument, ServiceError
from talofix.core.logging import setup_logging
from talofix.database.engine import close_db, ping_db

logger = structlog.get_logger(__name__)


class BlobFiles(StaticFiles):
    """本地对象存储的公开下载，不暴露元数据文件"""

    async def get_response(self, path: str, scope: Scope) -> Response:
        if path.endswith(META_SUFFIX):
            raise StarletteHTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return await super().get_response(path, scope)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理"""
    setup_logging()
    logger.info("app_started", env=settings.ENV, version=__version__)
    yield
    await close_db()


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
        if exc.http_status >= 500:
            logger.error("request_failed", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=exc.http_status, content={"error": exc.to_dict()})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        error = InvalidArgument("请求参数无效", details={"errors": _plain_errors(exc)})
        return JSONResponse(status_code=error.http_status, content={"error": error.to_dict()})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("request_unhandled_error", path=request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": {"code": "internal", "message": "服务器内部错误"}},
        )


def _plain_errors(exc: RequestValidationError) -> list:
    """只保留可序列化的字段"""
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="Talofix - Backend",
        description="多租户物业报修平台：入驻、邀请码、报修工作流",
        version=__version__,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app)

    app.include_router(api_router, prefix="/api")

    # 本地对象存储的公开下载地址
    app.mount("/files", BlobFiles(directory=settings.BLOB_ROOT, check_dir=False), name="files")

    @app.get("/health")
    async def health_check() -> dict:
        """健康检查端点"""
        try:
            database = await ping_db()
        except (SQLAlchemyError, OSError) as exc:
            logger.warning("health_db_unreachable", error=str(exc))
            database = False
        return {
            "status": "healthy" if database else "degraded",
            "service": "talofix-backend",
            "version": __version__,
            "database": database,
        }

    return app


app = create_app()
