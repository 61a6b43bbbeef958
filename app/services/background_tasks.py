"""
Background tasks service
后台任务服务 - 阶段截止时间扫描
"""

import asyncio
import logging
from typing import Optional

from app.core.config import settings
from app.core.database import db_manager
from app.services.round import RoundService

logger = logging.getLogger(__name__)


class BackgroundTaskService:
    """后台任务服务类"""

    def __init__(self):
        self.is_running = False
        self.sweep_task: Optional[asyncio.Task] = None

    async def start_phase_sweep_task(self, interval_seconds: Optional[float] = None):
        """
        启动阶段扫描任务
        客户端计时器全部离线时，由服务端推进已超时的 PROMPT / GENERATING 阶段
        """
        if self.is_running:
            logger.warning("阶段扫描任务已在运行")
            return

        interval = interval_seconds or settings.PHASE_SWEEP_INTERVAL
        self.is_running = True
        self.sweep_task = asyncio.create_task(self._phase_sweep_loop(interval))
        logger.info(f"阶段扫描任务已启动，检查间隔: {interval}秒")

    async def stop_phase_sweep_task(self):
        """停止阶段扫描任务"""
        if not self.is_running:
            return

        self.is_running = False
        if self.sweep_task:
            self.sweep_task.cancel()
            try:
                await self.sweep_task
            except asyncio.CancelledError:
                pass
            self.sweep_task = None

        logger.info("阶段扫描任务已停止")

    async def _phase_sweep_loop(self, interval: float):
        """阶段扫描循环任务"""
        while self.is_running:
            try:
                await self.sweep_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"阶段扫描任务执行失败: {str(e)}")

            await asyncio.sleep(interval)

    async def sweep_once(self) -> int:
        """执行一次阶段扫描，返回被推进的回合数"""
        if not db_manager.session_factory:
            await db_manager.initialize()

        async with db_manager.get_session() as session:
            round_service = RoundService(session)
            return await round_service.advance_expired_rounds()


# 全局后台任务服务实例
background_service = BackgroundTaskService()


async def start_background_tasks():
    """启动所有后台任务"""
    if settings.PHASE_SWEEP_ENABLED:
        await background_service.start_phase_sweep_task()


async def stop_background_tasks():
    """停止所有后台任务"""
    await background_service.stop_phase_sweep_task()


def get_background_service() -> BackgroundTaskService:
    """获取后台任务服务实例"""
    return background_service
