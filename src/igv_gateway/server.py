"""HTTP surface of the gateway."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Callable

from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse, Response
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from .auth import SessionManager
from .authorizer import RequestAuthorizer
from .client import CatalogClient
from .config import Config, get_config, setup_logging
from .consts import FLOW_COOKIE_NAME, PACKAGE_VERSION, SERVER_NAME, TOKEN_COOKIE_NAME
from .exceptions import AuthenticationError, CatalogError, ConfigError, DecodeFailedError
from .models import Credential, ErrorResponse
from .protocols import CatalogBackend
from .tracks import TrackAssembler

logger = logging.getLogger("igv-gateway.server")

PACKAGE_DIR = Path(__file__).parent
templates = Jinja2Templates(directory=str(PACKAGE_DIR / "templates"))


def get_credential(request: Request) -> Credential:
    """Credential the authorization middleware validated for this request."""
    credential = getattr(request.state, "credential", None)
    if credential is None:
        raise AuthenticationError("request was not authorized")
    return credential


def create_app(
    config: Config | None = None,
    catalog: CatalogBackend | None = None,
    session_manager: SessionManager | None = None,
) -> FastAPI:
    """Create and configure the gateway application.

    Args:
        config: Config instance. If None, uses get_config().
        catalog: Catalog client. If None, creates a CatalogClient.
        session_manager: If None, creates a SessionManager.

    Returns:
        Configured FastAPI application.
    """
    config = config or get_config()
    owned = []
    if session_manager is None:
        session_manager = SessionManager(config)
        owned.append(session_manager)
    if catalog is None:
        catalog = CatalogClient(config)
        owned.append(catalog)

    authorizer = RequestAuthorizer(session_manager, cookie_secure=config.cookie_secure)
    assembler = TrackAssembler(catalog, session_manager, config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        for resource in owned:
            try:
                await resource.aclose()
            except Exception as e:
                logger.error(f"Error during cleanup: {e}")

    app = FastAPI(title=SERVER_NAME, version=PACKAGE_VERSION, lifespan=lifespan)
    app.mount("/static", StaticFiles(directory=str(PACKAGE_DIR / "static")), name="static")

    @app.middleware("http")
    async def authorize_request(request: Request, call_next: Callable) -> Response:
        """Require a valid, refreshable credential on every non-public path."""
        if authorizer.is_public(request.url.path):
            return await call_next(request)

        try:
            session = await authorizer.authorize(request.cookies.get(TOKEN_COOKIE_NAME))
        except AuthenticationError as e:
            logger.info(f"Redirecting to login: {e.message}")
            return RedirectResponse("/login", status_code=status.HTTP_307_TEMPORARY_REDIRECT)

        request.state.credential = session.credential
        response = await call_next(request)
        try:
            return authorizer.apply(response, session)
        except DecodeFailedError as e:
            logger.error(e.message)
            return RedirectResponse("/index", status_code=status.HTTP_307_TEMPORARY_REDIRECT)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
    )

    @app.exception_handler(CatalogError)
    async def catalog_error_handler(request: Request, exc: CatalogError) -> JSONResponse:
        logger.error(f"{request.url.path}: {exc.message}")
        return JSONResponse(
            ErrorResponse.from_error(exc).model_dump(),
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    @app.exception_handler(AuthenticationError)
    async def auth_error_handler(request: Request, exc: AuthenticationError) -> Response:
        logger.info(f"{request.url.path}: {exc.message}")
        return RedirectResponse("/login", status_code=status.HTTP_307_TEMPORARY_REDIRECT)

    # ===== NAVIGATION & LOGIN =====

    @app.get("/")
    @app.get("/index")
    async def index() -> Response:
        return RedirectResponse("/browser/", status_code=status.HTTP_307_TEMPORARY_REDIRECT)

    @app.get("/login")
    async def login() -> Response:
        """Redirect to the identity provider."""
        flow = session_manager.begin_flow()
        response = RedirectResponse(
            flow.authorization_url, status_code=status.HTTP_307_TEMPORARY_REDIRECT
        )
        response.set_cookie(
            FLOW_COOKIE_NAME,
            flow.flow_id,
            max_age=config.flow_ttl_seconds,
            path="/",
            secure=config.cookie_secure,
            httponly=True,
            samesite="lax",
        )
        return response

    @app.get("/auth/callback")
    async def callback(request: Request, state: str = "", code: str = "") -> Response:
        """Finish the login: exchange the code and store the credential cookie."""
        try:
            credential = await session_manager.exchange_code(
                request.cookies.get(FLOW_COOKIE_NAME), state, code
            )
        except AuthenticationError as e:
            logger.error(e.message)
            return JSONResponse(
                ErrorResponse.from_error(e).model_dump(),
                status_code=status.HTTP_400_BAD_REQUEST,
            )

        response = RedirectResponse("/index", status_code=status.HTTP_303_SEE_OTHER)
        authorizer.set_credential_cookie(response, credential)
        response.delete_cookie(FLOW_COOKIE_NAME, path="/")
        return response

    # ===== BROWSER PAGE =====

    @app.get("/browser/")
    async def browser(
        request: Request, credential: Credential = Depends(get_credential)
    ) -> Response:
        """Viewer page with the signal and alignment listings."""
        file_data = await assembler.file_data(credential)
        return templates.TemplateResponse(
            request,
            "browser.html",
            {
                "bigwigs_list": file_data.bigwigs_data,
                "bam_list": file_data.bam_data,
            },
        )

    # ===== DATA =====

    @app.get("/data/default")
    async def default_track_config(
        credential: Credential = Depends(get_credential),
    ) -> JSONResponse:
        browser_config = await assembler.default_track_config(credential)
        return JSONResponse(browser_config.to_json())

    @app.get("/data/bigWigsTrack/{id}")
    async def bigwigs_tracks(
        id: str, credential: Credential = Depends(get_credential)
    ) -> JSONResponse:
        tracks = await assembler.signal_tracks(id, credential)
        return JSONResponse([track.to_json() for track in tracks])

    @app.get("/data/bamTrack/{id}")
    async def bam_tracks(
        id: str, credential: Credential = Depends(get_credential)
    ) -> JSONResponse:
        tracks = await assembler.alignment_tracks(id, credential)
        return JSONResponse([track.to_json() for track in tracks])

    logger.info("Gateway app created")
    return app


def main() -> None:
    """Main entry point."""
    import uvicorn

    config = get_config()
    setup_logging(config.log_level)

    try:
        config.validate_startup()
    except ConfigError as e:
        logger.error(f"{e.message}: {', '.join(e.errors)}")
        raise SystemExit(1) from e

    logger.info(f"Starting gateway for catalog {config.catalog_base_url}")
    uvicorn.run(
        create_app(config),
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
