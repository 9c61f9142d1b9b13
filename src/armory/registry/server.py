"""FastAPI server for the armory registry."""

from __future__ import annotations

import hmac
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import click
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from .. import __version__
from ..logging_config import setup_logging
from .models import (
    GeneralError,
    GetError,
    GetInfoError,
    GetInfoInput,
    GetInfoOutput,
    GetInput,
    GetOutput,
    ListError,
    ListInput,
    ListOutput,
    PublishError,
    PublishInput,
    PublishOutput,
)
from .protocol import (
    PASSWORD_HEADER,
    InvalidContentEncoding,
    decode_content,
    encode_content,
    error_response,
    output_response,
)
from .storage import ArtifactConflict, ArtifactNotFound, ArtifactStore, StorageError

logger = logging.getLogger(__name__)

DEFAULT_MAX_BODY_BYTES = 100 * 1024 * 1024


@dataclass
class ServerSettings:
    """Server configuration, built once at startup."""

    home: Path
    password: Optional[str] = None
    host: str = "0.0.0.0"
    port: int = 3000
    max_body_bytes: int = DEFAULT_MAX_BODY_BYTES

    @classmethod
    def from_env(cls, env: Optional[dict[str, str]] = None) -> "ServerSettings":
        src = os.environ if env is None else env
        home = src.get("ARMORY_HOME") or str(Path.home() / "armory")
        return cls(
            home=Path(home).expanduser(),
            password=src.get("ARMORY_PASSWORD"),
            host=src.get("ARMORY_HOST", "0.0.0.0"),
            port=int(src.get("ARMORY_PORT", "3000")),
            max_body_bytes=int(src.get("ARMORY_MAX_BODY_BYTES", str(DEFAULT_MAX_BODY_BYTES))),
        )


def create_app(settings: Optional[ServerSettings] = None, store: Optional[ArtifactStore] = None) -> FastAPI:
    """Create the registry FastAPI application."""
    settings = settings or ServerSettings.from_env()
    store = store or ArtifactStore(settings.home)

    logger.info('armory_home = "%s"', settings.home)
    store.ensure_dirs()
    if settings.password is None:
        logger.warning("no password configured; set ARMORY_PASSWORD to set a password")

    app = FastAPI(
        title="Armory Registry",
        description="Personal package registry",
        version=__version__,
    )

    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError):
        # Submitted values are not echoed back; they may not be encodable.
        errors = [{"loc": [str(part) for part in e["loc"]], "msg": e["msg"], "type": e["type"]} for e in exc.errors()]
        return Response(content=json.dumps({"detail": errors}), status_code=422, media_type="application/json")

    @app.middleware("http")
    async def authenticate(request: Request, call_next):
        length = request.headers.get("content-length")
        if request.method == "POST" and (length is None or not length.isdigit()):
            return JSONResponse(status_code=411, content={"detail": "content-length required"})
        if length is not None and length.isdigit() and int(length) > settings.max_body_bytes:
            return JSONResponse(status_code=413, content={"detail": "request body too large"})

        if request.url.path == "/health" or settings.password is None:
            return await call_next(request)

        provided = request.headers.get(PASSWORD_HEADER)
        if provided is None:
            logger.info("rejected %s: password missing", request.url.path)
            return error_response(GeneralError.PASSWORD_MISSING)
        if not hmac.compare_digest(provided.encode(), settings.password.encode()):
            logger.info("rejected %s: password invalid", request.url.path)
            return error_response(GeneralError.PASSWORD_INVALID)
        return await call_next(request)

    @app.get("/health")
    def health():
        return {"status": "ok", "service": "armory-registry"}

    @app.post("/publish")
    def publish(req: PublishInput):
        logger.info("handling publish request for %s@%s (%s)", req.name, req.version, req.triple)

        try:
            content = decode_content(req.content)
        except InvalidContentEncoding:
            return error_response(PublishError.INVALID_ENCODING)

        try:
            store.put(req.name, req.triple, req.version, content)
        except ArtifactConflict as e:
            logger.info("publish rejected: %s", e)
            return error_response(PublishError.VERSION_EXISTS)
        except StorageError:
            logger.exception("internal failure while publishing %s@%s", req.name, req.version)
            return error_response(PublishError.INTERNAL_ERROR)

        return output_response(PublishOutput())

    @app.post("/get")
    def get(req: GetInput):
        logger.info("handling get request for %s (%s)", req.name, req.triple)

        try:
            version, content = store.get(req.name, req.triple, req.version)
        except ArtifactNotFound:
            return error_response(GetError.PACKAGE_NOT_FOUND)
        except StorageError:
            logger.exception("internal failure while fetching %s", req.name)
            return error_response(GetError.INTERNAL_ERROR)

        return output_response(GetOutput(name=req.name, version=version, content=encode_content(content)))

    @app.post("/get-info")
    def get_info(req: GetInfoInput):
        logger.info("handling get info request for %s (%s)", req.name, req.triple)

        try:
            versions = store.versions(req.name, req.triple)
        except ArtifactNotFound:
            return error_response(GetInfoError.PACKAGE_NOT_FOUND)
        except StorageError:
            logger.exception("internal failure while reading versions of %s", req.name)
            return error_response(GetInfoError.INTERNAL_ERROR)

        return output_response(GetInfoOutput(name=req.name, versions=versions))

    @app.post("/list")
    def list_packages(req: ListInput):
        logger.info("handling list request (%s)", req.triple)

        try:
            packages = store.package_names(req.triple)
        except StorageError:
            logger.exception("internal failure while listing packages")
            return error_response(ListError.INTERNAL_ERROR)

        return output_response(ListOutput(packages=packages))

    return app


@click.command()
@click.option("--host", default=None, help="Host to bind to (default: ARMORY_HOST or 0.0.0.0)")
@click.option("--port", default=None, type=int, help="Port to bind to (default: ARMORY_PORT or 3000)")
@click.option("--home", default=None, type=click.Path(file_okay=False), help="Registry home directory")
@click.option("--log-level", default="INFO", help="Log level")
def main(host: Optional[str], port: Optional[int], home: Optional[str], log_level: str):
    """Start the armory registry server."""
    setup_logging(log_level)
    logger.info("starting server")

    settings = ServerSettings.from_env()
    if host:
        settings.host = host
    if port:
        settings.port = port
    if home:
        settings.home = Path(home).expanduser()

    app = create_app(settings)
    logger.info("listening on %s:%d", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
