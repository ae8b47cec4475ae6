from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session

from eventify.config import Settings, get_settings
from eventify.db import create_db_and_tables, create_db_engine
from eventify.routers import auth, health
from eventify.services.auth import AuthService
from eventify.services.nonce_store import NonceStore
from eventify.services.session_store import SessionStore
from eventify.services.signature import EthereumSignatureVerifier
from eventify.services.tokens import TokenCodec
from eventify.services.users import UserDirectory

logger = logging.getLogger(__name__)


def build_auth_service(settings: Settings, codec: TokenCodec) -> AuthService:
    return AuthService(
        settings=settings,
        nonces=NonceStore(settings),
        sessions=SessionStore(settings, codec),
        codec=codec,
        verifier=EthereumSignatureVerifier(),
        users=UserDirectory(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Settings are validated here; a missing JWT_SECRET aborts startup
    settings = get_settings()
    logging.getLogger("eventify").setLevel(settings.log_level.upper())

    engine = create_db_engine(settings)
    create_db_and_tables(engine)
    codec = TokenCodec(settings)
    app.state.engine = engine
    app.state.token_codec = codec
    app.state.auth_service = build_auth_service(settings, codec)

    # Periodic purge of expired nonces and refresh sessions
    async def _purge_loop() -> None:
        while True:
            await asyncio.sleep(settings.purge_interval_seconds)
            try:
                with Session(engine) as db:
                    nonces, sessions = await asyncio.to_thread(
                        app.state.auth_service.purge_expired, db
                    )
                if nonces or sessions:
                    logger.info(
                        "Auth purge: removed %d nonce(s), %d session(s)", nonces, sessions
                    )
            except Exception:
                logger.exception("Auth purge error")

    purge_task = asyncio.create_task(_purge_loop())

    yield

    # Shutdown: cancel purge loop
    purge_task.cancel()
    try:
        await purge_task
    except asyncio.CancelledError:
        pass
    # Shutdown: release pooled connections
    engine.dispose()


app = FastAPI(
    title="Eventify Auth",
    description="Wallet sign-in and session management for Eventify",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(health.router)
