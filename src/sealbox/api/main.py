from __future__ import annotations

import logging

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..containers.errors import ContainerError
from ..containers.service import ContainerService, build_service
from ..settings import settings
from .models import CreateRequest, SignRequest


def _error(message: str) -> JSONResponse:
    return JSONResponse(status_code=409, content={"Error": message})


def create_app(service: ContainerService | None = None) -> FastAPI:
    """Build the HTTP app around one ``ContainerService``.

    Without an explicit service one is built from the process settings.
    """
    app = FastAPI(title="Sealbox container service")
    app.state.service = service or build_service(settings)

    @app.exception_handler(ContainerError)
    async def container_error_handler(request: Request, exc: ContainerError):
        logging.info("%s %s failed [%s]: %s", request.method, request.url.path, exc.code, exc.message)
        return _error(exc.message)

    @app.exception_handler(RequestValidationError)
    async def bad_request_handler(request: Request, exc: RequestValidationError):
        return _error("Malformed request body.")

    def _service(request: Request) -> ContainerService:
        return request.app.state.service

    @app.get("/health")
    def health():
        return {"ok": True}

    @app.put("/create", status_code=201)
    def create_container(request: Request, body: CreateRequest):
        _service(request).create(body.name)
        return Response(status_code=201)

    @app.get("/read")
    def read_containers(request: Request):
        return _service(request).list().model_dump()

    @app.post("/sign", status_code=201)
    def sign_container(request: Request, body: SignRequest):
        _service(request).sign(body.name, body.userId)
        return Response(status_code=201)

    @app.delete("/delete", status_code=201)
    def delete_signature(request: Request, name: str | None = None, userId: str | None = None):
        _service(request).delete(name, userId)
        return Response(status_code=201)

    @app.get("/verify")
    def verify_container(request: Request, name: str | None = None):
        report = _service(request).verify(name)
        body = report.model_dump()
        body["ok"] = report.ok
        for entry, sig in zip(body["signatures"], report.signatures):
            entry["ok"] = sig.ok
        return body

    return app


app = create_app()
