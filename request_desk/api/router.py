from fastapi import APIRouter

from request_desk.api.availability import availability_router
from request_desk.api.managers import managers_router
from request_desk.api.requests import requests_router
from request_desk.api.uploads import files_router, uploads_router
from request_desk.api.users import users_router

api_router = APIRouter()
api_router.include_router(requests_router)
api_router.include_router(uploads_router)
api_router.include_router(files_router)
api_router.include_router(managers_router)
api_router.include_router(users_router)
api_router.include_router(availability_router)
