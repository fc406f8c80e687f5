import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from clinic_scheduler.core import config
from clinic_scheduler.database import create_tables, ensure_appointment_schema
from clinic_scheduler.jobs.appointment_generation_job import AppointmentGenerationJob
from clinic_scheduler.routes import (
    appointment_routes,
    auth_routes,
    clinic_routes,
    doctor_routes,
    holiday_routes,
    schedule_routes,
    service_routes,
    shift_routes,
    tariff_routes,
)

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
)

logger = logging.getLogger(__name__)


def initialize_database() -> None:
    try:
        create_tables()
        ensure_appointment_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@asynccontextmanager
async def lifespan(app: FastAPI):
    config.validate_runtime_config()
    initialize_database()

    job = None
    if config.APPOINTMENT_GENERATION_ENABLED:
        job = AppointmentGenerationJob()
        job.start()
    app.state.appointment_generation_job = job

    yield

    if job is not None:
        await job.stop()


app = FastAPI(title='Clinic Scheduler API', lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)


@app.get('/')
def root():
    return {'status': 'Clinic Scheduler API Running'}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(appointment_routes.router, prefix='/appointments')
app.include_router(holiday_routes.router, prefix='/holidays')
app.include_router(schedule_routes.router, prefix='/doctor-schedules')
app.include_router(doctor_routes.router, prefix='/doctors')
app.include_router(clinic_routes.router, prefix='/clinics')
app.include_router(service_routes.router, prefix='/services')
app.include_router(tariff_routes.router, prefix='/service-tariffs')
app.include_router(shift_routes.router, prefix='/shifts')
