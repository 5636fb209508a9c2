from fastapi import Request

from smartstudy.core.config import Settings
from smartstudy.core.context import AppContext


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def get_settings(request: Request) -> Settings:
    return request.app.state.context.settings


def get_db(request: Request):
    db = get_context(request).session()
    try:
        yield db
    finally:
        db.close()
