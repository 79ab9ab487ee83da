from fastapi import APIRouter
from .routes import catalog, simulations

api_router = APIRouter()

api_router.include_router(catalog.router, prefix="/catalog", tags=["catalog"])
api_router.include_router(simulations.router, prefix="/simulations", tags=["simulations"])
