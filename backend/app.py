import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import config
from routers import admin, ambulances, drivers, emergency_requests, realtime
from services.database import init_db, open_session
from services.errors import DispatchError
from services.fleet_service import load_and_prepare_fleet, seed_fleet

logging.basicConfig(
    level = config.LOG_LEVEL,
    format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    if config.FLEET_CSV:
        fleet = load_and_prepare_fleet(config.FLEET_CSV, required_columns=['Plate', 'Lat', 'Long'])
        with open_session() as session:
            seed_fleet(session, fleet)
    yield

app = FastAPI(title="Ambulance Dispatch Backend", lifespan=lifespan)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Routers ---
app.include_router(emergency_requests.router)
app.include_router(ambulances.router)
app.include_router(drivers.router)
app.include_router(admin.router)
app.include_router(realtime.router)

@app.exception_handler(DispatchError)
async def dispatch_error(request: Request, exc: DispatchError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

@app.get("/")
def read_root():
    return {"status": "Ambulance Dispatch Backend is running!"}
