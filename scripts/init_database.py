#!/usr/bin/env python3
"""
数据库初始化脚本
创建 MySQL 数据库并根据 SQLAlchemy 模型建表
生产环境请使用 `alembic upgrade head`
"""

import sys
import asyncio
import pymysql
from pathlib import Path
from sqlalchemy.engine import make_url

# 添加项目根目录到路径
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from app.core.config import settings  # noqa: E402
from app.core.database import db_manager  # noqa: E402


def get_config():
    """从 DATABASE_URL 解析 MySQL 连接参数"""
    url = make_url(settings.DATABASE_URL)
    return {
        "host": url.host or "localhost",
        "port": url.port or 3306,
        "user": url.username or "root",
        "password": url.password or "",
        "database": url.database,
        "charset": "utf8mb4",
    }


def create_database(config):
    """创建数据库（已存在则跳过）"""
    db_name = config["database"]
    conn_config = {k: v for k, v in config.items() if k != "database"}

    print(f"连接 MySQL 服务器: {config['host']}:{config['port']}")

    try:
        conn = pymysql.connect(**conn_config)
        cursor = conn.cursor()
        cursor.execute(f"""
            CREATE DATABASE IF NOT EXISTS `{db_name}`
            CHARACTER SET utf8mb4
            COLLATE utf8mb4_unicode_ci
        """)
        print(f"数据库 '{db_name}' 已就绪")
        cursor.close()
        conn.close()
        return True

    except pymysql.err.OperationalError as e:
        error_code = e.args[0]
        if error_code == 1045:
            print("错误: MySQL 认证失败，请检查用户名和密码")
        elif error_code == 2003:
            print(f"错误: 无法连接到 MySQL 服务器 {config['host']}:{config['port']}")
        else:
            print(f"MySQL 错误: {e}")
        return False


async def init_tables():
    """根据模型创建所有表"""
    print("\n初始化表结构...")
    await db_manager.initialize()
    try:
        await db_manager.create_all()
        print("表结构创建成功！")
    finally:
        await db_manager.close()


def main():
    config = get_config()
    if not create_database(config):
        sys.exit(1)
    asyncio.run(init_tables())


if __name__ == "__main__":
    main()
