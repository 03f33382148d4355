# artcart/main.py
from fastapi import FastAPI
import logging
from contextlib import asynccontextmanager

from artcart.config import settings
from artcart.api.routes import cart as cart_routes
from artcart.api.routes import catalog as catalog_routes
from artcart.services.cart_manager import create_cart_manager


logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context: build the one cart manager this process owns and load the
    persisted cart before serving widgets.
    """
    # --- startup logic ---
    logging.getLogger("artcart").setLevel(settings.LOG_LEVEL.upper())
    manager = create_cart_manager(settings)
    if not settings.store_path.exists():
        logger.info("No local store at %s yet; starting with an empty cart", settings.store_path)
    manager.init()
    app.state.cart_manager = manager
    logger.info("Cart ready: %d item(s), currency %s", len(manager.items), manager.currency)

    yield
    # --- shutdown logic ---
    manager.cleanup()
    app.state.cart_manager = None
    logger.info("Shutting down Artcart")


app = FastAPI(title="Artcart", version="0.1.0", lifespan=lifespan)

app.include_router(cart_routes.router)
app.include_router(catalog_routes.router)


@app.get("/", tags=["root"])
async def root():
    return {"status": "ok", "service": "Artcart", "env": settings.ENV}
