import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from src.config import settings
from src.db.main import init_db
from src.health import router as health_router
from src.chat.routes import router as chat_router
from src.transactions.routes import router as transactions_router
from src.inventory.routes import router as inventory_router
from src.error_handler import exception_handler

# Register every model with Base.metadata
from src.customers.models import Customer  # noqa: F401
from src.items.models import Item  # noqa: F401

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

# Set log level for application modules to INFO
logging.getLogger('src').setLevel(logging.INFO)

# Keep external libraries at WARNING to reduce noise
logging.getLogger('uvicorn').setLevel(logging.WARNING)
logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: create tables locally, production schema is managed by migrations
    if settings.ENV == "development":
        await init_db()
        logger.info("Database tables ensured (development)")
    yield

app = FastAPI(
    title="SokoTally API",
    version="1.0.0",
    docs_url="/docs" if settings.ENV == "development" else None,
    lifespan=lifespan
)

# CORS Configuration
if settings.ENV == "development":
    origins = ["http://localhost:3000", "http://localhost:5173"]  # Vite dev server
else:
    origins = [settings.WEB_APP_URL]  # Production domain

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

exception_handler(app)

app.include_router(health_router, tags=["health"])
app.include_router(chat_router, prefix="/api/chat", tags=["chat"])
app.include_router(transactions_router, prefix="/api/transactions", tags=["transactions"])
app.include_router(inventory_router, prefix="/api/inventory", tags=["inventory"])
