import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import firebase_config, schemas
from .database import make_engine
from .directory import UserDirectory
from .errors import CHECK_USERNAME, DEFAULT_LOCALE, LOGIN, REGISTER, AuthError, ValidationError, translate
from .firestore_directory import FirestoreUserDirectory
from .service import AuthService, AuthResult, TokenIssuer
from .settings import Settings, load_settings
from .sql_directory import SqlUserDirectory

logger = logging.getLogger("uvicorn")

ERROR_RESPONSES = {
    400: {"model": schemas.ErrorResponse},
    500: {"model": schemas.ErrorResponse},
    504: {"model": schemas.ErrorResponse},
}

ROUTE_OPERATIONS = {
    "/registerUser": REGISTER,
    "/loginUser": LOGIN,
    "/checkUsername": CHECK_USERNAME,
}


def create_app(
    settings: Optional[Settings] = None,
    directory: Optional[UserDirectory] = None,
    token_issuer: Optional[TokenIssuer] = None,
) -> FastAPI:
    """
    Builds the FastAPI app. Collaborators that are not passed in are created
    at startup from the environment and torn down at shutdown; missing
    Firebase credentials abort the startup. Settings that are not passed in
    are read from the environment at startup too.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings = app.state.settings or load_settings()
        app.state.settings = settings
        firebase_app = None
        owned_directory = None
        user_directory = directory
        issuer = token_issuer

        needs_firestore = user_directory is None and not settings.database_url
        if issuer is None or needs_firestore:
            firebase_app = firebase_config.initialize_firebase()

        if user_directory is None:
            if settings.database_url:
                engine = make_engine(settings.database_url, timeout=settings.store_timeout)
                user_directory = SqlUserDirectory(engine)
                logger.info("✅ Using SQL user directory.")
            else:
                user_directory = FirestoreUserDirectory.from_app(firebase_app, timeout=settings.store_timeout)
                logger.info("✅ Using Firestore user directory.")
            owned_directory = user_directory

        if issuer is None:
            issuer = firebase_config.FirebaseTokenIssuer(firebase_app)

        app.state.auth_service = AuthService(
            user_directory,
            issuer,
            bcrypt_rounds=settings.bcrypt_rounds,
            password_min_length=settings.password_min_length,
        )
        logger.info(f"Baynana Auth Server ready (locale={settings.locale})")
        try:
            yield
        finally:
            if owned_directory is not None:
                owned_directory.close()
            if firebase_app is not None:
                firebase_config.shutdown_firebase(firebase_app)

    app = FastAPI(title="Baynana Auth Server", lifespan=lifespan)
    app.state.settings = settings

    # CORS Setup
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    register_routes(app)
    return app


def _locale(request: Request) -> str:
    settings = request.app.state.settings
    return settings.locale if settings is not None else DEFAULT_LOCALE


def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message(_locale(request))})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        # Wrong types and malformed JSON are caller errors like missing fields
        error = ValidationError(ROUTE_OPERATIONS.get(request.url.path, REGISTER))
        return JSONResponse(status_code=error.status_code, content={"error": error.message(_locale(request))})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"❌ Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
        return JSONResponse(status_code=500, content={"error": translate("internal", _locale(request))})


# --- Dependencies ---

def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def _auth_response(result: AuthResult) -> schemas.AuthResponse:
    return schemas.AuthResponse(
        success=True,
        custom_token=result.custom_token,
        user=schemas.UserSummary(
            uid=result.uid,
            username=result.username,
            display_name=result.display_name,
        ),
    )


# --- Routes ---

def register_routes(app: FastAPI) -> None:

    @app.get("/", response_model=schemas.MessageResponse)
    def root():
        return {"message": "Baynana Auth Server is running!"}

    @app.post("/registerUser", response_model=schemas.AuthResponse, responses=ERROR_RESPONSES)
    def register_user(payload: schemas.RegisterRequest, service: AuthService = Depends(get_auth_service)):
        result = service.register(payload.username, payload.password, payload.display_name)
        return _auth_response(result)

    @app.post("/loginUser", response_model=schemas.AuthResponse, responses=ERROR_RESPONSES)
    def login_user(payload: schemas.LoginRequest, service: AuthService = Depends(get_auth_service)):
        result = service.login(payload.username, payload.password)
        return _auth_response(result)

    @app.post("/checkUsername", response_model=schemas.AvailabilityResponse, responses=ERROR_RESPONSES)
    def check_username(payload: schemas.CheckUsernameRequest, service: AuthService = Depends(get_auth_service)):
        return {"available": service.check_username(payload.username)}


app = create_app()


def run() -> None:
    import uvicorn

    settings = load_settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)
