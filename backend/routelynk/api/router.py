from fastapi import APIRouter

from routelynk.api.routes import health, auth, users, tickets, bookings, payments, vendor

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])  # GET /, /health/
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])  # POST /jwt
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(tickets.router, prefix="/tickets", tags=["tickets"])
api_router.include_router(bookings.router, prefix="/bookings", tags=["bookings"])
api_router.include_router(payments.router, tags=["payments"])  # /create-payment-intent, /payments
api_router.include_router(vendor.router, prefix="/vendor-stats", tags=["vendor"])
