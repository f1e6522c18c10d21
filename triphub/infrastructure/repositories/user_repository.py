# triphub/infrastructure/repositories/user_repository.py

from sqlalchemy.orm import Session
from sqlalchemy import select, update, func

from triphub.domain.authorization import Role
from triphub.infrastructure.db.models import User
from triphub.infrastructure.repositories.results import UpdateSummary


class UserRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_email(self, email: str) -> User | None:
        stmt = select(User).where(User.email == email)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_id(self, user_id: str) -> User | None:
        stmt = select(User).where(User.id == user_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def list_users(self) -> list[User]:
        stmt = select(User).order_by(User.created_at.desc())
        return list(self.db.execute(stmt).scalars().all())

    def get_or_create(
        self,
        email: str,
        name: str | None = None,
        photo: str | None = None,
    ) -> tuple[User, bool]:
        existing = self.get_by_email(email)
        if existing:
            return existing, False

        user = User(email=email, name=name, photo=photo, role=Role.USER)
        self.db.add(user)
        return user, True

    def set_role(self, email: str, role: Role) -> UpdateSummary:
        matched = self.db.execute(
            select(func.count()).select_from(User).where(User.email == email)
        ).scalar_one()

        stmt = (
            update(User)
            .where(User.email == email)
            .where(User.role != role)
            .values(role=role)
            .execution_options(synchronize_session=False)
        )
        modified = self.db.execute(stmt).rowcount
        return UpdateSummary(matched=matched, modified=modified)
