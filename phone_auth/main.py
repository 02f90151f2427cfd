from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from phone_auth.core.config import settings
from phone_auth.core.deps import AuthComponents, build_components
from phone_auth.core.errors import AuthError, RateLimited
from phone_auth.core.redis import RedisClient
from phone_auth.routers import auth, phone_codes, users


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Startup and shutdown events"""
    print("\n" + "=" * 50)
    print("  Starting Phone Auth API...")
    print("=" * 50)
    print(f"  Environment: {settings.APP_ENV}")
    print(f"  Normalizer:  {settings.PHONE_NORMALIZER}")
    print("-" * 50)

    try:
        from sqlalchemy import text
        from phone_auth.core.database import Base, engine
        from phone_auth.models import access_token, country_phone_code, otp_record, user  # noqa: F401
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        Base.metadata.create_all(bind=engine)
        print("  [OK]   Database")
    except Exception as e:
        print(f"  [FAIL] Database  - {e}")

    if settings.RATE_LIMIT_BACKEND == "redis":
        try:
            RedisClient.get_client()
            print(f"  [OK]   Redis     ({settings.REDIS_HOST}:{settings.REDIS_PORT})")
        except Exception as e:
            print(f"  [FAIL] Redis     - {e}")
    else:
        print("  [OK]   Rate limits in memory")

    print("-" * 50)
    print("  Phone Auth API is ready!")
    print("=" * 50 + "\n")
    yield

    print("\nShutting down Phone Auth API...")
    if settings.RATE_LIMIT_BACKEND == "redis":
        RedisClient.close()


def _validation_message(errors: dict[str, list[str]]) -> str:
    messages = [message for field_messages in errors.values() for message in field_messages]
    if not messages:
        return "The given data was invalid."
    extra = len(messages) - 1
    if extra == 0:
        return messages[0]
    return f"{messages[0]} (and {extra} more error{'s' if extra > 1 else ''})"


async def auth_error_handler(_request: Request, exc: AuthError):
    headers = {"Retry-After": str(exc.retry_after)} if isinstance(exc, RateLimited) else None
    return JSONResponse(
        status_code=422,
        content={"message": exc.message, "errors": exc.to_errors()},
        headers=headers,
    )


async def request_validation_handler(_request: Request, exc: RequestValidationError):
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        field = ".".join(location) or "body"
        errors.setdefault(field, []).append(error.get("msg", "Invalid value."))
    return JSONResponse(
        status_code=422,
        content={"message": _validation_message(errors), "errors": errors},
    )


def create_app(components: Optional[AuthComponents] = None) -> FastAPI:
    is_production = settings.APP_ENV == "production"

    app = FastAPI(
        title="Phone Auth API",
        lifespan=lifespan,
        docs_url=None if is_production else "/docs",
        redoc_url=None if is_production else "/redoc",
    )
    app.state.auth_components = components or build_components(settings)

    if settings.cors_origins_list:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins_list,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(AuthError, auth_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    @app.get("/")
    def health_check():
        return {"status": True}

    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(phone_codes.router)

    return app


app = create_app()
