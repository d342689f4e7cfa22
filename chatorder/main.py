# chatorder/main.py
from __future__ import annotations

import logging
import random
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr
from sqlalchemy import select
from sqlalchemy.orm import Session

from .auth import bearer_user_id, create_token, hash_password, verify_password
from .config import Settings
from .db import Base, get_db, make_engine, make_session_factory
from .emailer import EmailNotifier
from .menu import load_menu_file, seed_menu
from .models import MenuItem, Order, User
from .ordering.brain import OrderingEngine
from .ordering.catalog import CatalogCache, SqlCatalogStore
from .ordering.errors import PersistenceError
from .ordering.persistence import NotificationSink, OrderPersistence, SqlOrderPersistence
from .ordering.replies import ReplyBook
from .ordering.sessions import SessionStore

logger = logging.getLogger(__name__)

# Recoverable engine errors -> HTTP status
ERROR_STATUS = {
    "input_error": 400,
    "empty_order": 400,
    "authentication_required": 401,
    "concurrency_conflict": 409,
}


# -------------------
# Schemas
# -------------------
class SignupIn(BaseModel):
    name: str
    email: EmailStr
    phone: str | None = None
    password: str


class LoginIn(BaseModel):
    email: EmailStr
    password: str


class ChatIn(BaseModel):
    message: str | None = None
    session_id: str | None = None
    # session version the client last saw; a stale value makes checkout fail with 409
    version: int | None = None


# -------------------
# Dependencies
# -------------------
def get_ordering(request: Request) -> OrderingEngine:
    return request.app.state.ordering


def optional_user_id(request: Request, authorization: str | None = Header(default=None)) -> Optional[int]:
    return bearer_user_id(request.app.state.settings, authorization)


def require_user_id(request: Request, authorization: str | None = Header(default=None)) -> int:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Missing Bearer token")

    uid = bearer_user_id(request.app.state.settings, authorization)
    if not uid:
        raise HTTPException(status_code=401, detail="Invalid token")
    return uid


def _order_to_dict(order: Order) -> Dict[str, Any]:
    return {
        "id": order.id,
        "order_number": order.order_number,
        "queue_number": order.queue_number,
        "status": order.status,
        "total_amount": round(float(order.total_amount), 2),
        "payment": {
            "method": order.payment_method,
            "status": order.payment_status,
            "amount": round(float(order.total_amount), 2),
        },
        "items": [
            {
                "menu_item_id": line.menu_item_id,
                "name": line.name,
                "quantity": line.quantity,
                "price": round(float(line.unit_price), 2),
            }
            for line in order.lines
        ],
        "created_at": order.created_at.isoformat() if order.created_at else None,
    }


# -------------------
# App factory
# -------------------
def create_app(
    settings: Settings | None = None,
    *,
    persistence: OrderPersistence | None = None,
    notifier: NotificationSink | None = None,
    rng: random.Random | None = None,
) -> FastAPI:
    settings = settings or Settings()
    logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db_engine = make_engine(settings.database_url)
        Base.metadata.create_all(bind=db_engine)
        session_factory = make_session_factory(db_engine)

        if settings.menu_seed_path:
            db = session_factory()
            try:
                seed_menu(db, load_menu_file(settings.menu_seed_path))
            finally:
                db.close()

        sessions = SessionStore()
        app.state.settings = settings
        app.state.session_factory = session_factory
        app.state.ordering = OrderingEngine(
            store=sessions,
            catalog=CatalogCache(SqlCatalogStore(session_factory), refresh_seconds=settings.catalog_refresh_seconds),
            persistence=persistence or SqlOrderPersistence(session_factory),
            notifier=notifier or EmailNotifier(settings),
            replies=ReplyBook(rng=rng, canteen_name=settings.canteen_name, currency_symbol=settings.currency_symbol),
            checkout_timeout=settings.checkout_timeout_seconds,
        )
        logger.info("Chat ordering service started (catalog refresh every %ss)", settings.catalog_refresh_seconds)
        try:
            yield
        finally:
            sessions.close()
            db_engine.dispose()

    app = FastAPI(
        title="Canteen Chat Ordering API",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )

    # -------------------
    # Health
    # -------------------
    @app.get("/")
    def root():
        return {"ok": True, "service": "chatorder-api"}

    # -------------------
    # Auth
    # -------------------
    @app.post("/auth/signup")
    def signup(payload: SignupIn, db: Session = Depends(get_db)):
        if db.query(User).filter(User.email == payload.email).first():
            raise HTTPException(status_code=400, detail="Email already exists")

        u = User(
            name=payload.name,
            email=payload.email,
            phone=payload.phone,
            password_hash=hash_password(payload.password),
        )
        db.add(u)
        db.commit()
        db.refresh(u)
        return {"ok": True}

    @app.post("/auth/login")
    def login(payload: LoginIn, db: Session = Depends(get_db)):
        u = db.query(User).filter(User.email == payload.email).first()
        if not u or not verify_password(payload.password, u.password_hash):
            raise HTTPException(status_code=401, detail="Bad credentials")
        return {"token": create_token(settings, u.id)}

    # -------------------
    # Menu
    # -------------------
    @app.get("/menu")
    def menu(db: Session = Depends(get_db)):
        rows = db.scalars(select(MenuItem).where(MenuItem.is_available.is_(True)).order_by(MenuItem.id)).all()
        return {
            "count": len(rows),
            "items": [
                {
                    "id": r.id,
                    "name": r.name,
                    "category": r.category,
                    "description": r.description or "",
                    "price": round(float(r.price), 2),
                }
                for r in rows
            ],
        }

    # -------------------
    # Chat ordering
    # -------------------
    @app.post("/chat")
    async def chat(
        payload: ChatIn,
        user_id: Optional[int] = Depends(optional_user_id),
        ordering: OrderingEngine = Depends(get_ordering),
    ):
        session_id = (payload.session_id or "").strip() or f"conv-{uuid4().hex}"

        try:
            reply = await ordering.handle_message(
                session_id,
                payload.message or "",
                user_id=user_id,
                expected_version=payload.version,
            )
        except PersistenceError as e:
            session = ordering.session(session_id)
            return JSONResponse(
                status_code=502,
                content={
                    "status": "error",
                    "message": e.message,
                    "error": e.code,
                    "session_id": session_id,
                    "state": session.state.value,
                    "version": session.version,
                },
            )

        if reply.error:
            return JSONResponse(status_code=ERROR_STATUS.get(reply.error, 400), content=reply.to_dict())
        return reply.to_dict()

    @app.post("/chat/{session_id}/reset")
    async def reset_chat(session_id: str, ordering: OrderingEngine = Depends(get_ordering)):
        reply = await ordering.cancel(session_id)
        return reply.to_dict()

    # -------------------
    # Orders
    # -------------------
    @app.get("/orders/{order_number}")
    def order_status(order_number: str, user_id: int = Depends(require_user_id), db: Session = Depends(get_db)):
        order = db.scalars(
            select(Order).where(Order.order_number == order_number, Order.user_id == user_id)
        ).first()
        if not order:
            raise HTTPException(status_code=404, detail="Order not found")
        return {"status": "success", "order": _order_to_dict(order)}

    return app


app = create_app()
