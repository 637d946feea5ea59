from fastapi import APIRouter
from factory_ledger.api.v1.endpoints import products, reports

api_router = APIRouter()

api_router.include_router(products.router, prefix="/products", tags=["products"])
api_router.include_router(reports.router, prefix="/reports", tags=["reports"])
