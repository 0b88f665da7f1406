import logging
from contextlib import asynccontextmanager

import msgspec
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from oidctodo import background, config, globals
from oidctodo.fastapi import auth, authz, todos
from oidctodo.fastapi.errors import install_error_handlers
from oidctodo.fastapi.logging import AccessLogMiddleware
from oidctodo.oidc.identity import UserIdentity


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - startup path
    """Create the shared OIDC client and stores in each worker process.

    Configuration is passed via the OIDCTODO_CONFIG JSON env variable (set by
    the CLI entrypoint) so that uvicorn reload / multiprocess workers inherit
    the settings, with plain OIDC_* variables as fallback.
    """
    try:
        await globals.init(config.load())
    except (ValueError, msgspec.ValidationError) as e:
        logging.error(f"⚠️ {e}")
        # Re-raise to fail fast
        raise
    await background.start()
    yield
    await background.stop()
    await globals.close()


def _cors_origins() -> list[str]:
    try:
        return [config.load().frontend_url]
    except (ValueError, msgspec.ValidationError):
        return []  # Reported at startup by lifespan


app = FastAPI(lifespan=lifespan)

install_error_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(AccessLogMiddleware)

app.mount("/auth/", auth.app)
app.include_router(todos.router)


@app.get("/api/health")
async def health():
    return PlainTextResponse("ok")


@app.get("/api/hello")
async def hello():
    return PlainTextResponse("hello world")


@app.get("/api/protected")
async def protected(user: UserIdentity = Depends(authz.verify)):
    return {"message": "This is protected content", "user": user.to_dict()}
