# studyup_chat/main.py
import logging
import sys
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from studyup_chat.api import chats, realtime
from studyup_chat.config import AppConfig
from studyup_chat.infrastructure.database import create_database
from studyup_chat.infrastructure.event_dispatcher import EventDispatcher
from studyup_chat.infrastructure.event_handlers import EventHandlers
from studyup_chat.infrastructure.redis_client import RedisClient
from studyup_chat.infrastructure.security import SecurityService
from studyup_chat.realtime.delivery import MessageDeliveryPipeline
from studyup_chat.realtime.handler import ConnectionHandler
from studyup_chat.realtime.presence import PresenceRegistry
from studyup_chat.realtime.rooms import RoomManager
from studyup_chat.realtime.typing_relay import TypingRelay


class Application:
    def __init__(self, config: AppConfig, engine: AsyncEngine | None = None):
        self.config = config
        self.logger = self.setup_logger()
        engine = engine or create_async_engine(config.DATABASE_URL, echo=False)
        self.database = create_database(engine)
        self.redis_client = RedisClient(
            config.REDIS_HOST, config.REDIS_PORT, self.logger
        )
        self.event_dispatcher = EventDispatcher(self.logger)
        self.security_service = SecurityService(config)

        # one registry and room index per process, shared by every connection
        self.presence = PresenceRegistry(self.logger)
        self.rooms = RoomManager(self.presence, self.logger)
        self.delivery_pipeline = MessageDeliveryPipeline(
            self.database,
            self.event_dispatcher,
            self.rooms,
            self.logger,
            persist_timeout=config.MESSAGE_PERSIST_TIMEOUT_SECONDS,
        )
        self.connection_handler = ConnectionHandler(
            self.database,
            self.presence,
            self.rooms,
            self.delivery_pipeline,
            TypingRelay(self.rooms, self.logger),
            self.logger,
            require_participant=config.CHAT_JOIN_REQUIRES_PARTICIPANT,
        )
        self.event_handlers = EventHandlers(self.redis_client, self.rooms)

        # local fan-out first so a Redis hiccup cannot delay clients
        self.event_dispatcher.register(
            "MessageCreated", self.event_handlers.broadcast_message_created
        )
        self.event_dispatcher.register(
            "MessageCreated", self.event_handlers.publish_message_created
        )
        self.event_dispatcher.register(
            "MessageRead", self.event_handlers.notify_message_read
        )
        self.event_dispatcher.register(
            "MessageRead", self.event_handlers.publish_message_read
        )

    @asynccontextmanager
    async def lifespan(self, app: FastAPI):
        await self.database.connect()
        await self.redis_client.connect()
        yield
        await self.database.disconnect()
        await self.redis_client.disconnect()

    def setup_logger(self):
        logger = logging.getLogger("StudyUpRealtime")
        logger.setLevel(logging.INFO)

        if not logger.handlers:
            c_handler = logging.StreamHandler(sys.stdout)
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )
            c_handler.setFormatter(formatter)
            logger.addHandler(c_handler)

        return logger

    def create_app(self) -> FastAPI:
        app = FastAPI(
            title=self.config.PROJECT_NAME,
            version=self.config.PROJECT_VERSION,
            description=self.config.PROJECT_DESCRIPTION,
            openapi_url=f"{self.config.API_V1_STR}/openapi.json",
            lifespan=self.lifespan,
        )
        app.add_middleware(
            CORSMiddleware,
            allow_origins=self.config.CORS_ORIGINS,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        app.state.config = self.config
        app.state.security_service = self.security_service
        app.state.event_dispatcher = self.event_dispatcher
        app.state.database = self.database
        app.state.logger = self.logger
        app.state.presence = self.presence
        app.state.delivery_pipeline = self.delivery_pipeline
        app.state.connection_handler = self.connection_handler

        app.include_router(
            chats.router, prefix=f"{self.config.API_V1_STR}/chats", tags=["chats"]
        )
        app.include_router(realtime.router, tags=["realtime"])

        @app.get("/")
        async def root():
            return {
                "name": self.config.PROJECT_NAME,
                "version": self.config.PROJECT_VERSION,
                "status": "running",
                "endpoints": {
                    "health": "/health",
                    "chats": f"{self.config.API_V1_STR}/chats",
                    "realtime": "/ws",
                },
            }

        @app.get("/health")
        async def health():
            timestamp = datetime.now(UTC).isoformat()
            try:
                await self.database.ping()
            except (SQLAlchemyError, OSError) as e:
                return JSONResponse(
                    status_code=503,
                    content={
                        "status": "error",
                        "timestamp": timestamp,
                        "database": "disconnected",
                        "error": str(e),
                    },
                )
            return {
                "status": "ok",
                "timestamp": timestamp,
                "database": "connected",
                "onlineUsers": len(self.presence),
            }

        @app.exception_handler(Exception)
        async def global_exception_handler(request: Request, exc: Exception):
            self.logger.exception(f"Unhandled error on {request.url.path}")
            return JSONResponse(
                status_code=500,
                content={"message": f"An unexpected error occurred: {str(exc)}"},
            )

        return app


def create():
    config = AppConfig()
    application = Application(config)
    app = application.create_app()
    application.logger.info("Application created and configured")

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create(), host="127.0.0.1", port=8000)
