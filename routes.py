# routes.py
from fastapi import FastAPI
from controller.admin_controller import admin_router
from controller.document_controller import document_router
from controller.query_controller import query_router


def register_routes(app: FastAPI) -> None:
    """Register & Access control controllers here."""
    app.include_router(query_router)
    app.include_router(document_router)
    app.include_router(admin_router)
