from fastapi import APIRouter

from itasks.api.v1.endpoints import (
    auth, users, teams, tasks, comments, recurring, sla, notifications, system, dashboard,
)

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(users.router, prefix="/users", tags=["Users"])
api_router.include_router(teams.router, prefix="/teams", tags=["Teams"])
api_router.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["Dashboard"])
api_router.include_router(comments.router, tags=["Comments & Attachments"])
api_router.include_router(recurring.router, prefix="/recurring", tags=["Recurring Tasks"])
api_router.include_router(sla.router, prefix="/sla", tags=["SLA"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
api_router.include_router(system.router, prefix="/system", tags=["System"])
