# triphub/infrastructure/repositories/vendor_repository.py

from datetime import datetime, timezone

from sqlalchemy.orm import Session
from sqlalchemy import select, update, func

from triphub.domain.exceptions import DuplicateVendorApplicationError
from triphub.domain.state_machine import VendorStatus
from triphub.infrastructure.db.models import Vendor
from triphub.infrastructure.repositories.results import UpdateSummary


class VendorRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, vendor_id: str) -> Vendor | None:
        stmt = select(Vendor).where(Vendor.id == vendor_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_email(self, email: str) -> Vendor | None:
        stmt = select(Vendor).where(Vendor.email == email)
        return self.db.execute(stmt).scalar_one_or_none()

    def list_vendors(self, status: VendorStatus | None = None) -> list[Vendor]:
        stmt = select(Vendor).order_by(Vendor.created_at.desc())
        if status:
            stmt = stmt.where(Vendor.status == status)
        return list(self.db.execute(stmt).scalars().all())

    def create_vendor(
        self,
        email: str,
        name: str,
        image: str | None = None,
    ) -> Vendor:

        if self.get_by_email(email):
            raise DuplicateVendorApplicationError(
                "Vendor application already exists"
            )

        vendor = Vendor(
            email=email,
            name=name,
            image=image,
            status=VendorStatus.PENDING,
        )
        self.db.add(vendor)
        return vendor

    def update_status(self, vendor: Vendor, new_status: VendorStatus) -> None:
        vendor.status = new_status
        vendor.updated_at = datetime.now(timezone.utc)

    def mark_fraud(self, email: str) -> UpdateSummary:
        matched = self.db.execute(
            select(func.count()).select_from(Vendor).where(Vendor.email == email)
        ).scalar_one()

        stmt = (
            update(Vendor)
            .where(Vendor.email == email)
            .where(Vendor.status != VendorStatus.FRAUD)
            .values(
                status=VendorStatus.FRAUD,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        modified = self.db.execute(stmt).rowcount
        return UpdateSummary(matched=matched, modified=modified)
