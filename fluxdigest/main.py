"""应用主入口"""

from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv

# 在读取配置前，从 .env 文件加载环境变量
try:
    load_dotenv()
except Exception as e:  # noqa: BLE001
    # logger 还未配置，使用 print 输出警告
    print(f"Warning: Failed to load .env file: {e}. Continuing with environment variables...")

from fastapi import FastAPI
from loguru import logger

from .container import Services, build_services
from .infrastructure import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理：启动时启动简报调度器，关闭时停止"""
    setup_logging()
    logger.info("=" * 80)
    logger.info("应用启动，初始化日志系统和简报调度器...")

    services: Services = app.state.services
    if services.settings.enabled:
        services.scheduler.start()
    else:
        logger.info("[简报调度] 已在配置中关闭定时简报")

    yield

    await services.scheduler.shutdown()


def create_app(services: Optional[Services] = None) -> FastAPI:
    """创建FastAPI应用实例"""
    app = FastAPI(
        title="Fluxdigest API",
        description="Miniflux 订阅的 AI 简报：定时生成、存储与推送",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.services = services or build_services()

    @app.get("/health")
    async def health_check():
        """健康检查接口"""
        scheduler = app.state.services.scheduler
        return {"status": "ok", "scheduler": "running" if scheduler.running else "stopped"}

    from .presentation.routes import digest
    app.include_router(digest.router, prefix="/api/digest", tags=["digest"])

    return app


app = create_app()
