import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.database import Database

import config
from database import connect, ensure_indexes
from errors import register_error_handlers
from routes import ROUTERS
from schemas import Category, Order, Product, User

logger = logging.getLogger(__name__)


def create_app(database: Optional[Database] = None) -> FastAPI:
    """Build the API. Pass ``database`` to use an existing handle instead of connecting."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.db is None:
            app.state.db = connect(config.DATABASE_URL, config.DATABASE_NAME)
            ensure_indexes(app.state.db)
        yield

    if config.JWT_SECRET == config.JWT_SECRET_FALLBACK:
        logger.warning("JWT_SECRET is not set; signing tokens with the development fallback key")

    app = FastAPI(title="T-Shirt Store API", lifespan=lifespan)
    app.state.db = database

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    @app.get("/")
    def root():
        return {"name": "T-Shirt Store API", "status": "ok"}

    @app.get("/test")
    def test_database():
        db = app.state.db
        response = {
            "backend": "✅ Running",
            "database": "❌ Not Available",
            "database_url": "✅ Set" if config.DATABASE_URL else "❌ Not Set",
            "database_name": None,
            "connection_status": "Not Connected",
            "collections": []
        }
        if db is None:
            return response
        response["database_name"] = db.name
        response["connection_status"] = "Connected"
        try:
            response["collections"] = db.list_collection_names()[:10]
            response["database"] = "✅ Connected & Working"
        except Exception as e:
            logger.warning("Database health check failed: %s", e)
            response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
        return response

    @app.get("/schema")
    def schema():
        return {
            "user": User.model_json_schema(),
            "category": Category.model_json_schema(),
            "product": Product.model_json_schema(),
            "order": Order.model_json_schema(),
        }

    for router in ROUTERS:
        app.include_router(router)
    return app


if __name__ == "__main__":
    import uvicorn
    config.configure_logging()
    uvicorn.run(create_app(), host="0.0.0.0", port=config.PORT)
