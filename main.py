import logging
from contextlib import asynccontextmanager
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel, Field, StrictInt

import config
from database import close_client, get_database, open_client
from entity_store import STORE_SEARCH_FIELDS, USER_SEARCH_FIELDS, EntityStore, build_query, new_id
from errors import RatingsError, StoreNotFound, ValidationFailed
from ratings import EMPTY_SUMMARY, RatingAggregator
from schemas import (
    AdminUserView,
    DashboardStats,
    OwnerStoreReport,
    PublicUser,
    Rating,
    Role,
    Store,
    StoreWithRating,
    User,
)
from security import decode_access_token
from sessions import SessionManager, landing_path
from validation import ensure
import stats

logging.basicConfig(level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO), format=config.LOG_FORMAT)
logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/login")

# Whether the admin user list shows the average rating of the user's store
SHOWS_STORE_AVERAGE: Dict[Role, bool] = {
    Role.ADMIN: False,
    Role.USER: False,
    Role.OWNER: True,
}


# Dependencies

def get_store(request: Request) -> EntityStore:
    return request.app.state.store


def get_sessions(store: EntityStore = Depends(get_store)) -> SessionManager:
    return SessionManager(store)


def get_aggregator(store: EntityStore = Depends(get_store)) -> RatingAggregator:
    return RatingAggregator(store)


async def get_current_user(token: str = Depends(oauth2_scheme), store: EntityStore = Depends(get_store)) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    user_id = decode_access_token(token)
    if user_id is None:
        raise credentials_exception
    user = store.get_user(user_id)
    if not user:
        raise credentials_exception
    return user


def require_role(*roles: Role):
    async def role_dep(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return current_user
    return role_dep


# Request/Response Models

class SignupRequest(BaseModel):
    name: str
    email: str
    address: str
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: PublicUser
    redirect: str


class CreateUserRequest(BaseModel):
    name: str
    email: str
    address: str
    password: str
    role: Role


class CreateStoreRequest(BaseModel):
    owner_id: str
    name: str = Field(..., min_length=1, max_length=120)
    email: str
    address: str
    description: Optional[str] = None


class UpdatePasswordRequest(BaseModel):
    new_password: str


class RateStoreRequest(BaseModel):
    user_id: str
    store_id: str
    score: StrictInt


def create_app(client=None) -> FastAPI:
    """
    Build the API.

    Args:
        client: Mongo client to use. When omitted one is opened at startup
            from DATABASE_URL and closed at shutdown; a passed-in client is
            left open for its owner.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_client = client is None
        mongo = open_client() if owns_client else client
        store = EntityStore(get_database(mongo), latency_ms=config.SIMULATED_LATENCY_MS)
        store.ensure_indexes()
        if config.SEED_DEMO_DATA and store.seed_demo_data():
            logger.info("Initialized database with demo data")
        app.state.store = store
        logger.info("Ratings Platform API started")
        try:
            yield
        finally:
            if owns_client:
                close_client(mongo)
            logger.info("Ratings Platform API stopped")

    app = FastAPI(title="Ratings Platform API", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RatingsError)
    async def ratings_error_handler(request: Request, exc: RatingsError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    register_routes(app)
    return app


def register_routes(app: FastAPI) -> None:

    # Auth Routes
    @app.post("/login", response_model=TokenResponse)
    async def login(payload: LoginRequest, sessions: SessionManager = Depends(get_sessions)):
        user, token = await sessions.login_with_token(payload.email, payload.password)
        return TokenResponse(access_token=token, user=user.public(), redirect=landing_path(user.role))

    @app.post("/signup", response_model=PublicUser, status_code=status.HTTP_201_CREATED)
    async def signup(payload: SignupRequest, sessions: SessionManager = Depends(get_sessions)):
        user = await sessions.signup(payload.name, payload.email, payload.password, payload.address)
        return user.public()

    @app.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
    def logout(
        token: str = Depends(oauth2_scheme),
        current_user: User = Depends(get_current_user),
        sessions: SessionManager = Depends(get_sessions),
    ):
        # only the token that opened the session may close it
        sessions.logout(token)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.get("/session", response_model=Optional[PublicUser])
    def current_session(
        token: str = Depends(oauth2_scheme),
        current_user: User = Depends(get_current_user),
        sessions: SessionManager = Depends(get_sessions),
    ):
        user = sessions.session_user_for(token)
        return user.public() if user else None

    @app.get("/me", response_model=PublicUser)
    def me(current_user: User = Depends(get_current_user)):
        return current_user.public()

    @app.post("/users/{user_id}/password", status_code=status.HTTP_204_NO_CONTENT)
    async def update_password(
        user_id: str,
        payload: UpdatePasswordRequest,
        current_user: User = Depends(get_current_user),
        sessions: SessionManager = Depends(get_sessions),
    ):
        if current_user.id != user_id and current_user.role != Role.ADMIN:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        await sessions.update_password(user_id, payload.new_password)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    # Admin Routes
    @app.get("/users", response_model=List[AdminUserView])
    def admin_list_users(
        search: Optional[str] = None,
        name: Optional[str] = None,
        email: Optional[str] = None,
        address: Optional[str] = None,
        role: Optional[Role] = None,
        sort_by: str = Query("name", pattern="^(id|name|email|address|role)$"),
        order: str = Query("asc", pattern="^(asc|desc)$"),
        admin: User = Depends(require_role(Role.ADMIN)),
        store: EntityStore = Depends(get_store),
        aggregator: RatingAggregator = Depends(get_aggregator),
    ):
        q = build_query(
            search=search,
            search_fields=USER_SEARCH_FIELDS,
            contains={"name": name, "email": email, "address": address},
            exact={"role": role},
        )
        users = store.list_users(q, sort_by=sort_by, order=order)
        result = []
        for u in users:
            view = AdminUserView(**u.public().model_dump())
            if SHOWS_STORE_AVERAGE[u.role]:
                owned = store.stores_owned_by(u.id)
                if owned:
                    view.average_rating = round(aggregator.average_for(owned[0].id), 2)
            result.append(view)
        return result

    @app.get("/roles")
    def role_options(admin: User = Depends(require_role(Role.ADMIN))):
        """Choices for the admin "add user" form."""
        return [{"value": r.value, "label": r.label} for r in Role]

    @app.post("/users", response_model=PublicUser, status_code=status.HTTP_201_CREATED)
    def admin_create_user(
        payload: CreateUserRequest,
        admin: User = Depends(require_role(Role.ADMIN)),
        sessions: SessionManager = Depends(get_sessions),
    ):
        user = sessions.create_user(payload.name, payload.email, payload.password, payload.address, payload.role)
        return user.public()

    @app.post("/stores", response_model=Store, status_code=status.HTTP_201_CREATED)
    def admin_create_store(
        payload: CreateStoreRequest,
        admin: User = Depends(require_role(Role.ADMIN)),
        store: EntityStore = Depends(get_store),
    ):
        ensure([("email", payload.email), ("address", payload.address)])
        owner = store.get_user(payload.owner_id)
        if not owner or owner.role != Role.OWNER:
            raise ValidationFailed("owner_id must be a valid Store Owner")
        new_store = Store(
            id=new_id("s"),
            owner_id=payload.owner_id,
            name=payload.name,
            email=payload.email,
            address=payload.address,
            description=payload.description,
        )
        store.add_store(new_store)
        return new_store

    @app.get("/stats", response_model=DashboardStats)
    def admin_dashboard(admin: User = Depends(require_role(Role.ADMIN)), store: EntityStore = Depends(get_store)):
        return stats.compute(store)

    # Stores and Ratings
    @app.get("/stores", response_model=List[StoreWithRating])
    def list_stores(
        search: Optional[str] = None,
        sort_by: str = Query("name", pattern="^(id|name|email|address|average_rating|total_ratings)$"),
        order: str = Query("asc", pattern="^(asc|desc)$"),
        current_user: User = Depends(get_current_user),
        store: EntityStore = Depends(get_store),
        aggregator: RatingAggregator = Depends(get_aggregator),
    ):
        q = build_query(search=search, search_fields=STORE_SEARCH_FIELDS)
        computed = sort_by in ("average_rating", "total_ratings")
        stores = store.list_stores(q, sort_by="name" if computed else sort_by, order=order)
        summaries = aggregator.summarize([s.id for s in stores], user_id=current_user.id)
        result = []
        for s in stores:
            summary = summaries.get(s.id, EMPTY_SUMMARY)
            result.append(StoreWithRating(
                **s.model_dump(),
                average_rating=round(summary.average, 2),
                total_ratings=summary.count,
                user_rating=summary.user_score,
            ))
        if computed:
            result.sort(key=lambda s: getattr(s, sort_by), reverse=(order == "desc"))
        return result

    @app.get("/stores/{store_id}/ratings", response_model=List[Rating])
    def store_ratings(
        store_id: str,
        current_user: User = Depends(get_current_user),
        store: EntityStore = Depends(get_store),
        aggregator: RatingAggregator = Depends(get_aggregator),
    ):
        if store.get_store(store_id) is None:
            raise StoreNotFound()
        return aggregator.ratings_for(store_id)

    @app.post("/ratings", response_model=Rating)
    def rate_store(
        payload: RateStoreRequest,
        current_user: User = Depends(get_current_user),
        store: EntityStore = Depends(get_store),
        aggregator: RatingAggregator = Depends(get_aggregator),
    ):
        if payload.user_id != current_user.id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Cannot rate on behalf of another user")
        if store.get_store(payload.store_id) is None:
            raise StoreNotFound()
        return aggregator.submit(payload.user_id, payload.store_id, payload.score)

    # Owner routes
    @app.get("/owner/dashboard", response_model=List[OwnerStoreReport])
    def owner_dashboard(
        current_owner: User = Depends(require_role(Role.OWNER)),
        store: EntityStore = Depends(get_store),
        aggregator: RatingAggregator = Depends(get_aggregator),
    ):
        owned = store.stores_owned_by(current_owner.id)
        summaries = aggregator.summarize([s.id for s in owned])
        result = []
        for s in owned:
            summary = summaries.get(s.id, EMPTY_SUMMARY)
            result.append(OwnerStoreReport(
                store=s,
                average_rating=round(summary.average, 2),
                total_ratings=summary.count,
                ratings=aggregator.raters_for(s.id),
            ))
        return result

    # Utility endpoints
    @app.get("/")
    def root():
        return {"message": "Ratings Platform API running"}

    @app.get("/test")
    def test_database(store: EntityStore = Depends(get_store)):
        try:
            collections = store.db.list_collection_names()
            return {"backend": "ok", "database": "ok", "collections": sorted(collections)}
        except Exception as e:
            logger.error(f"Database check failed: {e}")
            return {"backend": "ok", "database": f"error: {e}"}


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
