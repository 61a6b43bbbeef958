"""
Health check endpoints
健康检查端点
"""

from fastapi import APIRouter, Depends, HTTPException, status
from typing import Dict, Any

from app.core.config import settings
from app.core.database import health_check as db_health_check
from app.core.redis_client import redis_health_check
from app.services.llm import PromptGenerator, get_prompt_generator
from app.services.background_tasks import get_background_service
from app.websocket.connection_manager import connection_manager

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Basic health check endpoint
    基础健康检查端点
    """
    return {
        "status": "healthy",
        "service": "ai-pictionary",
        "version": "1.0.0"
    }


@router.get("/health/detailed")
async def detailed_health_check(
    prompt_source: PromptGenerator = Depends(get_prompt_generator),
) -> Dict[str, Any]:
    """
    Detailed health check across the backing services
    详细健康检查：数据库、Redis、提示词生成、后台任务
    """
    try:
        database = await db_health_check()
        redis_status = await redis_health_check()
        overall = "healthy" if database.get("status") == "healthy" else "degraded"
        return {
            "status": overall,
            "environment": settings.ENVIRONMENT,
            "database": database,
            "redis": redis_status,
            "prompt_generator": await prompt_source.health_check(),
            "phase_sweeper": {"running": get_background_service().is_running},
            "websocket_connections": connection_manager.connection_count,
        }
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Health check failed: {str(e)}"
        )
