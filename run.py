"""
Development server runner
开发服务器启动脚本

    python run.py            # 读取 .env 中的 HOST / PORT / DEBUG / WORKERS
"""

import uvicorn
from app.core.config import settings


def main():
    options = dict(
        host=settings.HOST,
        port=settings.PORT,
        access_log=True,
        log_level=settings.LOG_LEVEL.lower(),
    )
    # reload 与多 worker 互斥；阶段扫描任务在每个 worker 中各自运行，条件更新保证不会重复推进
    if settings.DEBUG:
        options["reload"] = True
    else:
        options["workers"] = settings.WORKERS

    uvicorn.run("app.main:app", **options)


if __name__ == "__main__":
    main()
