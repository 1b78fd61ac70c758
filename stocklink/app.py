"""
HTTP front end: FastAPI app setup and route configuration.
Exposes link extraction and a cookie health check over JSON.
"""

from __future__ import annotations

import contextlib
from collections.abc import AsyncGenerator

import dotenv
import fastapi
import pydantic
import uvicorn
from fastapi.middleware import cors
from starlette import responses

from stocklink import relay
from stocklink.config import get_settings
from stocklink.extraction.orchestrator import Extractor
from stocklink.utils import errors, logger, serialization

dotenv.load_dotenv()

log = logger.create_logger("Server")

# HTTP status per failure kind.
_STATUS_BY_KIND: dict[errors.ErrorKind, int] = {
    "authentication": 401,
    "invalid-result": 502,
    "resource": 503,
    "timeout": 504,
}


class ExtractLinkRequest(pydantic.BaseModel):
    """Body of ``POST /extract-link``."""

    url: str | None = None
    cookies: str | dict[str, str] | None = None


class ExtractLinkResponse(pydantic.BaseModel):
    """Successful extraction response."""

    model_config = pydantic.ConfigDict(alias_generator=serialization.snake_to_camel, populate_by_name=True)

    success: bool = True
    download_link: str


def get_extractor(request: fastapi.Request) -> Extractor:
    """Return the extractor created at startup."""
    return request.app.state.extractor


@contextlib.asynccontextmanager
async def lifespan(app: fastapi.FastAPI) -> AsyncGenerator[None]:
    """Create the shared extractor and close any leftover browser on shutdown."""
    app.state.extractor = Extractor(get_settings())
    log.section("StockLink Server Started")
    yield
    log.info("Shutting down gracefully...")
    await app.state.extractor.close()


app = fastapi.FastAPI(title="StockLink Download Link API", lifespan=lifespan)

app.add_middleware(
    cors.CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# ============================================================================
# API Routes
# ============================================================================


def _error_response(status_code: int, message: str, kind: str | None = None) -> responses.JSONResponse:
    body: dict[str, object] = {"success": False, "error": message}
    if kind:
        body["kind"] = kind
    return responses.JSONResponse(status_code=status_code, content=body)


@app.post("/extract-link", response_model=None)
async def extract_link(
    body: ExtractLinkRequest,
    extractor: Extractor = fastapi.Depends(get_extractor),
) -> dict[str, object] | responses.JSONResponse:
    """Resolve the direct download link for an asset URL."""
    if not body.url:
        return _error_response(400, "URL is required")

    log.info("Incoming extraction request", {"url": body.url})
    try:
        link = relay.validate_result(await extractor.extract(body.url, body.cookies))
    except errors.ExtractionError as error:
        return _error_response(_STATUS_BY_KIND[error.kind], error.message, error.kind)
    except ValueError as error:
        return _error_response(400, errors.get_error_message(error))

    return ExtractLinkResponse(download_link=link).model_dump(by_alias=True)


@app.get("/health", response_model=None)
async def health(extractor: Extractor = fastapi.Depends(get_extractor)) -> dict[str, object] | responses.JSONResponse:
    """Report whether session cookies are stored."""
    try:
        cookies = extractor.cookie_store.load()
    except (OSError, ValueError) as error:
        log.error("Failed to read cookie store", {"error": errors.get_error_message(error)})
        return _error_response(500, "Failed to check cookies")
    return {"success": True, "hasCookies": bool(cookies), "cookieCount": len(cookies)}


# ============================================================================
# Start Server
# ============================================================================


def main() -> None:
    """Entry point for running the server."""
    settings = get_settings()
    log.success(f"Server listening on {settings.api_host}:{settings.api_port}")
    uvicorn.run("stocklink.app:app", host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()
