"""
API v1 router
API v1 路由配置
"""

from fastapi import APIRouter

# Import route modules
from app.api.v1.endpoints import rooms, players, rounds, submissions, game, websocket, health

api_router = APIRouter()

# Include endpoint routers
api_router.include_router(health.router, tags=["health"])
api_router.include_router(rooms.router, prefix="/rooms", tags=["rooms"])
api_router.include_router(players.router, prefix="/players", tags=["players"])
api_router.include_router(rounds.router, prefix="/rounds", tags=["rounds"])
api_router.include_router(submissions.router, prefix="/submissions", tags=["submissions"])
api_router.include_router(game.router, prefix="/game", tags=["game"])
api_router.include_router(websocket.router, prefix="/ws", tags=["websocket"])
