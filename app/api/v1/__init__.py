"""API v1 routes"""
from fastapi import APIRouter
from app.api.v1 import listings, messages, transactions, users, notifications

api_router = APIRouter()

api_router.include_router(listings.router)
api_router.include_router(messages.router)
api_router.include_router(transactions.router)
api_router.include_router(users.router)
api_router.include_router(notifications.router)
