from __future__ import annotations

from dataclasses import dataclass, field

from fastapi import Request, Response

from socialnet.core.config import settings
from socialnet.services.tokens import IssuedTokens


# -----------------------------
# Cookie settings
# -----------------------------
def access_cookie_name() -> str:
    return str(getattr(settings, "ACCESS_COOKIE_NAME", "token")).strip() or "token"


def refresh_cookie_name() -> str:
    return str(getattr(settings, "REFRESH_COOKIE_NAME", "refresh_token")).strip() or "refresh_token"


def cookie_path() -> str:
    return str(getattr(settings, "AUTH_COOKIE_PATH", "/")).strip() or "/"


def cookie_secure() -> bool:
    return bool(getattr(settings, "AUTH_COOKIE_SECURE", True))


def cookie_samesite() -> str:
    v = str(getattr(settings, "AUTH_COOKIE_SAMESITE", "strict")).lower().strip()
    if v not in {"lax", "strict", "none"}:
        return "strict"
    return v


def cookie_domain() -> str | None:
    return getattr(settings, "AUTH_COOKIE_DOMAIN", None) or None


# -----------------------------
# Cookie plan
# -----------------------------
@dataclass(frozen=True)
class CookieSpec:
    name: str
    value: str
    max_age: int


@dataclass
class CookiePlan:
    """
    Cookies a response must set or delete. Built by the auth flows, applied
    by the HTTP layer.
    """

    set: list[CookieSpec] = field(default_factory=list)
    delete: list[str] = field(default_factory=list)

    def apply(self, resp: Response) -> Response:
        for cookie in self.set:
            resp.set_cookie(
                key=cookie.name,
                value=cookie.value,
                max_age=cookie.max_age,
                httponly=True,
                secure=cookie_secure(),
                samesite=cookie_samesite(),
                path=cookie_path(),
                domain=cookie_domain(),
            )
        for name in self.delete:
            resp.delete_cookie(
                key=name,
                path=cookie_path(),
                domain=cookie_domain(),
                secure=cookie_secure(),
                httponly=True,
                samesite=cookie_samesite(),
            )
        return resp


def plan_for_issue(issued: IssuedTokens) -> CookiePlan:
    plan = CookiePlan()
    plan.set.append(
        CookieSpec(
            name=access_cookie_name(),
            value=issued.access_token,
            max_age=issued.access_ttl_minutes * 60,
        )
    )
    if issued.refresh_token is not None:
        plan.set.append(
            CookieSpec(
                name=refresh_cookie_name(),
                value=issued.refresh_token,
                max_age=int(issued.refresh_ttl_minutes or 0) * 60,
            )
        )
    else:
        # A non-remembered login must not leave an older refresh cookie behind.
        plan.delete.append(refresh_cookie_name())
    return plan


def plan_for_clear() -> CookiePlan:
    return CookiePlan(delete=[access_cookie_name(), refresh_cookie_name()])


def _read_cookie(req: Request, name: str) -> str | None:
    val = req.cookies.get(name)
    if not val:
        return None
    val = val.strip()
    return val or None


def read_refresh_cookie(req: Request) -> str | None:
    return _read_cookie(req, refresh_cookie_name())


def read_access_cookie(req: Request) -> str | None:
    return _read_cookie(req, access_cookie_name())
