from fastapi import Depends, Header

from triphub.domain.authorization import Identity, Role, authorize
from triphub.domain.exceptions import AuthorizationError
from triphub.infrastructure.db.session import SessionLocal
from triphub.infrastructure.gateways.identity_provider import identity_provider_from_env
from triphub.infrastructure.gateways.payment_gateway import razorpay_gateway_from_env
from triphub.infrastructure.repositories.user_repository import UserRepository


def get_db():
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_payment_gateway():
    return razorpay_gateway_from_env()


def get_identity_provider():
    return identity_provider_from_env()


def get_current_identity(
    authorization: str | None = Header(default=None),
    provider=Depends(get_identity_provider),
    db=Depends(get_db),
) -> Identity:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise AuthorizationError("Unauthorized access")

    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise AuthorizationError("Unauthorized access")

    email = provider.verify_token(token)
    user = UserRepository(db).get_by_email(email)
    role = user.role if user else Role.USER
    return Identity(email=email, role=role)


def get_optional_identity(
    authorization: str | None = Header(default=None),
    provider=Depends(get_identity_provider),
    db=Depends(get_db),
) -> Identity | None:
    if authorization is None:
        return None
    return get_current_identity(authorization, provider, db)


def require_role(required_role: Role):
    def dependency(identity: Identity = Depends(get_current_identity)) -> Identity:
        return authorize(identity, required_role)

    return dependency


require_user = require_role(Role.USER)
require_vendor = require_role(Role.VENDOR)
require_admin = require_role(Role.ADMIN)
