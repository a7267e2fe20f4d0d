import os
import importlib
from fastapi import FastAPI, APIRouter
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from alembic.config import Config
from alembic import command
from core.database import settings

import logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("workflow_dashboard")

# The directory where all application folders are located
APPS_DIRECTORY = "apps"
API_PREFIX = "/api/v1"

# --- Database Migration Function ---
def run_migrations():
    """Programmatically runs Alembic migrations."""
    logger.info("Running database migrations...")
    try:
        # Load Alembic configuration from the alembic.ini file
        alembic_cfg = Config(os.path.join(os.path.dirname(__file__), "alembic.ini"))
        alembic_cfg.set_main_option("sqlalchemy.url", settings.DATABASE_URL)
        # Run the 'upgrade head' command to apply all pending migrations
        command.upgrade(alembic_cfg, "head")
        logger.info("Migrations complete.")
    except Exception as e:
        logger.error(f"An error occurred during migrations: {e}")
        raise

# Initialize the main FastAPI application
app = FastAPI(
    title="Workflow Dashboard API",
    description="IT job orders, notifications and the CAR register.",
    version="1.0.0",
)

# --- CORS Middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=['*'],  # Allows all origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Uploaded attachments
app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="uploads")

# --- Root Endpoint for Testing ---
@app.get("/")
def root():
    return {"name": app.title, "version": app.version, "api": API_PREFIX}

# --- Dynamic App Discovery and Router Inclusion ---
apps_path = os.path.join(os.path.dirname(__file__), APPS_DIRECTORY)

logger.debug(f"Searching for apps in: {apps_path}")

if not os.path.isdir(apps_path):
    logger.error(f"The directory '{APPS_DIRECTORY}' was not found.")
else:
    for item_name in sorted(os.listdir(apps_path)):
        app_dir = os.path.join(apps_path, item_name)

        if os.path.isdir(app_dir) and not item_name.startswith(('_', '.')):
            module_name = f"{APPS_DIRECTORY}.{item_name}.router"
            try:
                # Import the models from each app to ensure Alembic can detect them
                importlib.import_module(f'{APPS_DIRECTORY}.{item_name}.models')

                router_module = importlib.import_module(module_name)
                router_instance = getattr(router_module, "router", None)

                if router_instance and isinstance(router_instance, APIRouter):
                    app.include_router(
                        router_instance,
                        prefix=f"{API_PREFIX}/{item_name}",
                        tags=[item_name.replace('_', ' ').capitalize()]
                    )
                    logger.info(f"Loaded router from '{item_name}'.")
                else:
                    logger.warning(f"Could not find a valid APIRouter named 'router' in '{module_name}'.")

            except ImportError as e:
                logger.error(f"Failed to import router for '{item_name}': {e}")

# --- Startup Event Handler ---
@app.on_event("startup")
def startup_event():
    """Run database migrations on application startup."""
    logger.info("Starting Workflow Dashboard...")
    if settings.RUN_MIGRATIONS:
        run_migrations()
    logger.info("Application is ready to serve requests.")
