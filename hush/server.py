"""
Hush daemon - FastAPI HTTP surface over the secret store.

Every route except /health requires `Authorization: Bearer <token>`.
The daemon stores envelopes exactly as received and never decrypts them.
"""

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, Field

from .auth import TokenAuthority
from .database import SecretsDatabase
from .errors import StorageError


class SecretIn(BaseModel):
    key: str = Field(min_length=1)
    value: str = Field(min_length=1)
    project: str = Field(min_length=1)
    environment: str = Field(min_length=1)


class SecretOut(BaseModel):
    key: str
    value: str
    project: str
    environment: str
    updated_at: str


def bearer_token(request: Request) -> str | None:
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return None
    return auth[7:].strip() or None


class HushServer:
    """Holds the daemon's dependencies and builds its FastAPI app."""

    def __init__(self, store: SecretsDatabase, authority: TokenAuthority):
        self.store = store
        self.authority = authority

    def require_token(self, request: Request) -> None:
        if not self.authority.validate(bearer_token(request)):
            logger.warning(f"Rejected unauthenticated {request.method} {request.url.path}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or missing token",
                headers={"WWW-Authenticate": "Bearer"},
            )

    def set_secret(self, secret: SecretIn) -> dict:
        try:
            self.store.upsert(secret.project, secret.environment, secret.key, secret.value)
        except StorageError as exc:
            logger.exception(
                f"Failed to store {secret.project}/{secret.environment}/{secret.key}"
            )
            raise HTTPException(status_code=500, detail="Storage failure") from exc
        logger.info(f"Stored {secret.project}/{secret.environment}/{secret.key}")
        return {"status": "ok"}

    def get_secrets(self, project: str | None, environment: str | None) -> list[SecretOut]:
        if not project or not environment:
            raise HTTPException(
                status_code=400, detail="project and environment required"
            )
        try:
            records = self.store.fetch(project, environment)
        except StorageError as exc:
            logger.exception(f"Failed to fetch {project}/{environment}")
            raise HTTPException(status_code=500, detail="Storage failure") from exc
        return [
            SecretOut(
                key=r.key,
                value=r.value,
                project=r.project,
                environment=r.environment,
                updated_at=r.updated_at,
            )
            for r in records
        ]

    def list_projects(self) -> list[str]:
        try:
            return self.store.list_projects()
        except StorageError as exc:
            logger.exception("Failed to list projects")
            raise HTTPException(status_code=500, detail="Storage failure") from exc

    def create_app(self) -> FastAPI:
        app = FastAPI(title="Hush Daemon")
        authenticated = [Depends(self.require_token)]

        @app.exception_handler(RequestValidationError)
        async def malformed_body(request: Request, exc: RequestValidationError):
            return JSONResponse(
                status_code=400,
                content={
                    "detail": "Malformed request body",
                    "errors": jsonable_encoder(exc.errors()),
                },
            )

        @app.post("/api/secrets", status_code=201, dependencies=authenticated)
        def set_secret(secret: SecretIn):
            """Upsert one envelope under (project, environment, key)."""
            return self.set_secret(secret)

        @app.get(
            "/api/secrets",
            response_model=list[SecretOut],
            dependencies=authenticated,
        )
        def get_secrets(project: str | None = None, environment: str | None = None):
            """Return every envelope stored for one project/environment."""
            return self.get_secrets(project, environment)

        @app.get("/api/projects", response_model=list[str], dependencies=authenticated)
        def list_projects():
            return self.list_projects()

        @app.get("/health")
        def health():
            return {"status": "healthy"}

        return app


def create_app(db_path: str) -> FastAPI:
    """Build a daemon app backed by the SQLite database at db_path."""
    store = SecretsDatabase(db_path)
    return HushServer(store, TokenAuthority(store)).create_app()
