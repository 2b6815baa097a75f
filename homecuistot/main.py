# HomeCuistot API Main Entry Point
import logging
import sys
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .errors import HomeCuistotError
from .settings import settings
from .routers.ready import router as ready_router
from .routers.inventory import router as inventory_router
from .routers.recipes import router as recipes_router

# Configure structured logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger("homecuistot")

app = FastAPI(title="HomeCuistot API", version="0.1.0")


async def homecuistot_error_handler(request: Request, exc: HomeCuistotError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


app.add_exception_handler(HomeCuistotError, homecuistot_error_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ready_router, prefix="/api", tags=["ready"])
app.include_router(inventory_router, prefix="/api/inventory", tags=["inventory"])
app.include_router(recipes_router, prefix="/api/recipes", tags=["recipes"])
