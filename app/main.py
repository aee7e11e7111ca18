import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.logging import configure_logging
from app.api.v1.time_slots.router import class_binding_router
from app.api.v1.time_slots.router import router as time_slots_router
from app.api.v1.time_slots.router import templates_router as time_slot_templates_router
from app.api.v1.teacher_qualifications.router import router as teacher_qualifications_router
from app.api.v1.teacher_qualifications.router import subjects_router as qualified_teachers_router
from app.api.v1.teacher_class_assignments.router import router as teacher_class_assignments_router
from app.api.v1.teacher_class_assignments.router import teachers_router as workload_router
from app.api.v1.teacher_availability.router import router as teacher_availability_router
from app.api.v1.timetables.router import router as timetables_router

logger = logging.getLogger(__name__)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Timetable Scheduling Backend")

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # Routers
    app.include_router(time_slot_templates_router)
    app.include_router(time_slots_router)
    app.include_router(class_binding_router)
    app.include_router(teacher_qualifications_router)
    app.include_router(qualified_teachers_router)
    app.include_router(teacher_class_assignments_router)
    app.include_router(workload_router)
    app.include_router(teacher_availability_router)
    app.include_router(timetables_router)

    return app


app = create_app()
