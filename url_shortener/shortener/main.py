from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
import logging
import uvicorn
import time

from shortener.database import engine, Base
from shortener.routers import urls
from shortener.config import settings
from shortener.clicks import ClickLogger, ClickDispatcher
from shortener.dependencies import url_store
from shortener.geolocation import GeoLocationResolver

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
)
logger = logging.getLogger("shortener")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Управляет жизненным циклом приложения"""
    logger.info("Запуск приложения...")

    geo_resolver = GeoLocationResolver()
    dispatcher = ClickDispatcher(
        ClickLogger(url_store, geo_resolver),
        max_workers=settings.CLICK_WORKERS,
        max_pending=settings.CLICK_QUEUE_SIZE
    )
    dispatcher.start()

    app.state.click_dispatcher = dispatcher
    app.state.geo_resolver = geo_resolver

    yield

    logger.info("Завершение работы приложения...")

    # Уже отправленные клики дописываются до закрытия HTTP-клиента геолокации
    dispatcher.shutdown(wait=True)
    geo_resolver.close()


Base.metadata.create_all(bind=engine)

app = FastAPI(
    title=settings.APP_NAME,
    description="API для сервиса сокращения ссылок со статистикой переходов",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time

    if request.url.path.startswith("/urls"):
        logger.info("%s %s - %s - %.4fs", request.method, request.url.path, response.status_code, process_time)

    return response


@app.get("/", tags=["root"])
async def root():
    return {
        "message": settings.APP_NAME,
        "docs_url": "/docs",
        "version": "1.0.0"
    }


# Роут редиректа /{short_code} перехватывает любые одиночные пути, поэтому подключается последним
app.include_router(urls.router)


if __name__ == "__main__":
    uvicorn.run("shortener.main:app", host="0.0.0.0", port=8000, reload=True)
