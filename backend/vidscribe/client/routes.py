"""
Client-side path dispatch for the single-page front-end.
"""
from __future__ import annotations

from enum import Enum


class View(str, Enum):
    LANDING = "landing"
    LOGIN = "login"
    SIGNUP = "signup"
    PRICING = "pricing"
    DASHBOARD = "dashboard"


PUBLIC_ROUTES = {
    "/": View.LANDING,
    "/login": View.LOGIN,
    "/signup": View.SIGNUP,
    "/pricing": View.PRICING,
}


def resolve_route(path: str, authenticated: bool) -> View:
    """Signed-in users always land on the dashboard; unknown public paths show the landing page."""
    if authenticated:
        return View.DASHBOARD
    normalized = "/" + (path or "").split("?", 1)[0].strip("/")
    return PUBLIC_ROUTES.get(normalized, View.LANDING)
