from __future__ import annotations

import logging
from contextlib import asynccontextmanager, contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator

from fastapi import (
    Body,
    Depends,
    FastAPI,
    HTTPException,
    Request,
    Security,
    WebSocket,
    status,
)
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jsonschema import ValidationError

from .accounts.service import AccountService
from .admin import config as admin_config
from .admin import health as admin_health
from .admin import stats as admin_stats
from .auth.tokens import TokenService
from .bidding.engine import BidEngine
from .bidding.errors import (
    BiddingError,
    Conflict,
    InvalidCredentials,
    InvalidFormat,
    NotFound,
    Unauthenticated,
)
from .config import ServerConfig, get_server_config
from .live.channel import LiveChannelServer
from .live.directory import NotificationDirectory
from .live.dispatcher import OutbidDispatcher
from .media.urls import ObjectUrlService
from .storage import build_storage
from .transport.signatures import SigningKeys
from .validation.validator import SchemaRegistry, get_schema_registry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    server_config = get_server_config()
    schema_registry = get_schema_registry()
    storage = build_storage(server_config)
    keys = SigningKeys.from_files(
        private_key_path=server_config.auth.private_key_path,
        public_key_path=server_config.auth.public_key_path,
    )
    token_service = TokenService(keys, ttl_seconds=server_config.auth.token_ttl_seconds)
    directory = NotificationDirectory()
    live_channel = LiveChannelServer(
        token_service,
        directory,
        token_param=server_config.live.token_param,
    )
    dispatcher = OutbidDispatcher(live_channel)
    bid_engine = BidEngine(storage, dispatcher)
    account_service = AccountService(storage, token_service)
    object_urls = ObjectUrlService(
        server_config.media.backend,
        dict(server_config.media.options),
        keys=keys,
    )

    app.state.server_config = server_config
    app.state.schema_registry = schema_registry
    app.state.storage = storage
    app.state.token_service = token_service
    app.state.directory = directory
    app.state.live_channel = live_channel
    app.state.dispatcher = dispatcher
    app.state.bid_engine = bid_engine
    app.state.account_service = account_service
    app.state.object_urls = object_urls
    app.state.start_time = datetime.now(timezone.utc)

    dispatcher.start()
    try:
        yield
    finally:
        await dispatcher.stop(drain_timeout=2.0)


app = FastAPI(
    title="Auction Bidding Server",
    version="1.0.0",
    docs_url="/docs",
    lifespan=lifespan,
)

app.include_router(admin_health.router)
app.include_router(admin_stats.router)
app.include_router(admin_config.router)

bearer_scheme = HTTPBearer(auto_error=False)


# Dependency helpers ---------------------------------------------------------


def get_server_settings(request: Request) -> ServerConfig:
    return request.app.state.server_config


def get_schema_service(request: Request) -> SchemaRegistry:
    return request.app.state.schema_registry


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_bid_engine(request: Request) -> BidEngine:
    return request.app.state.bid_engine


def get_account_service(request: Request) -> AccountService:
    return request.app.state.account_service


def get_object_urls(request: Request) -> ObjectUrlService:
    return request.app.state.object_urls


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),
    tokens: TokenService = Depends(get_token_service),
) -> str:
    token = credentials.credentials if credentials else None
    try:
        return tokens.verify(token)
    except Unauthenticated as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc


_ERROR_STATUS: tuple[tuple[type[BiddingError], int], ...] = (
    (InvalidFormat, status.HTTP_400_BAD_REQUEST),
    (InvalidCredentials, status.HTTP_400_BAD_REQUEST),
    (Unauthenticated, status.HTTP_401_UNAUTHORIZED),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (Conflict, status.HTTP_409_CONFLICT),
)


@contextmanager
def service_errors(action: str) -> Iterator[None]:
    """Translate domain errors into HTTP errors; anything else becomes a 500."""
    try:
        yield
    except BiddingError as exc:
        code = next(
            (code for error, code in _ERROR_STATUS if isinstance(exc, error)),
            status.HTTP_400_BAD_REQUEST,
        )
        raise HTTPException(status_code=code, detail=str(exc)) from exc
    except HTTPException:
        raise
    except Exception as exc:
        logger.error("%s failed: %s", action, exc, exc_info=True)
        raise HTTPException(status_code=500, detail="Server error") from exc


def validate_body(schemas: SchemaRegistry, schema_name: str, payload: Any) -> None:
    try:
        schemas.validate(schema_name, payload)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc.message)) from exc


# Routes ---------------------------------------------------------------------


@app.get("/", tags=["meta"])
async def root(settings: ServerConfig = Depends(get_server_settings)) -> dict[str, Any]:
    return {
        "service": "bidserver",
        "version": app.version,
        "storage_backend": settings.storage.backend,
        "live": {"path": "/ws", "token_param": settings.live.token_param},
    }


@app.post("/signup", tags=["accounts"], status_code=status.HTTP_201_CREATED)
async def signup(
    payload: dict[str, Any] = Body(...),
    schemas: SchemaRegistry = Depends(get_schema_service),
    accounts: AccountService = Depends(get_account_service),
) -> dict[str, str]:
    validate_body(schemas, "signup", payload)
    with service_errors("signup"):
        token = await accounts.signup(payload["username"], payload["email"], payload["password"])
    return {"token": token}


@app.post("/login", tags=["accounts"])
async def login(
    payload: dict[str, Any] = Body(...),
    schemas: SchemaRegistry = Depends(get_schema_service),
    accounts: AccountService = Depends(get_account_service),
) -> dict[str, str]:
    validate_body(schemas, "login", payload)
    with service_errors("login"):
        token = await accounts.login(payload["email"], payload["password"])
    return {"token": token}


@app.get("/me", tags=["accounts"])
async def user_page(
    username: str = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
    engine: BidEngine = Depends(get_bid_engine),
) -> dict[str, Any]:
    with service_errors("user page"):
        user = await accounts.profile(username)
        partitions = await engine.list_for_bidder(username)
    return {"user": user, **partitions}


@app.get("/products", tags=["listings"])
async def list_products(
    _: str = Depends(get_current_user),
    engine: BidEngine = Depends(get_bid_engine),
) -> list[dict[str, Any]]:
    with service_errors("list products"):
        return await engine.list_listings()


@app.get("/products/{listing_id}", tags=["listings"])
async def get_product(
    listing_id: int,
    _: str = Depends(get_current_user),
    engine: BidEngine = Depends(get_bid_engine),
) -> dict[str, Any]:
    with service_errors("get product"):
        return await engine.get_listing(listing_id)


@app.post("/products", tags=["listings"], status_code=status.HTTP_201_CREATED)
async def create_product(
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
    schemas: SchemaRegistry = Depends(get_schema_service),
    engine: BidEngine = Depends(get_bid_engine),
) -> dict[str, Any]:
    validate_body(schemas, "listing_create", payload)
    with service_errors("create product"):
        return await engine.create_listing(username, payload)


@app.post("/products/{listing_id}/bids", tags=["bidding"])
async def place_bid(
    listing_id: int,
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
    schemas: SchemaRegistry = Depends(get_schema_service),
    engine: BidEngine = Depends(get_bid_engine),
) -> dict[str, Any]:
    validate_body(schemas, "bid", payload)
    with service_errors("place bid"):
        return await engine.place_bid(listing_id, username, payload.get("bid_price"))


@app.delete("/products/{listing_id}", tags=["bidding"])
async def cancel_bid(
    listing_id: int,
    _: str = Depends(get_current_user),
    engine: BidEngine = Depends(get_bid_engine),
) -> dict[str, str]:
    with service_errors("cancel bid"):
        await engine.cancel_bid(listing_id)
    return {"message": "Product bid canceled and deleted successfully"}


@app.post("/media/upload-url", tags=["media"])
async def upload_url(
    payload: dict[str, Any] = Body(...),
    _: str = Depends(get_current_user),
    schemas: SchemaRegistry = Depends(get_schema_service),
    object_urls: ObjectUrlService = Depends(get_object_urls),
) -> dict[str, str]:
    validate_body(schemas, "media_key", payload)
    with service_errors("sign upload url"):
        return {"url": await object_urls.sign_upload(payload["image"])}


@app.post("/media/download-url", tags=["media"])
async def download_url(
    payload: dict[str, Any] = Body(...),
    _: str = Depends(get_current_user),
    schemas: SchemaRegistry = Depends(get_schema_service),
    object_urls: ObjectUrlService = Depends(get_object_urls),
) -> dict[str, str]:
    validate_body(schemas, "media_key", payload)
    with service_errors("sign download url"):
        return {"url": await object_urls.sign_download(payload["image"])}


@app.websocket("/ws")
async def live_channel(websocket: WebSocket) -> None:
    await websocket.app.state.live_channel.handle(websocket)
