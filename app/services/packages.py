"""
packages.py — Point packages and the simulated points purchase

Buying a package mints its points into the company's balance; there is no
payment provider behind it.
"""

from typing import List

from sqlalchemy.orm import Session

from app.core.errors import InvalidArgument, NotFound
from app.core.logging import get_logger
from app.database.connection import unit_of_work
from app.database.models import PointPackage, Role, Transaction, TransactionType
from app.services import ledger
from app.services.actor import Actor, PackageId, require_role

logger = get_logger(__name__)

DEFAULT_PACKAGES = [
    {"name": "Starter Pack", "points": 100, "price": 10, "description": "Perfect for small projects"},
    {"name": "Pro Pack", "points": 500, "price": 45, "description": "Best value for growing teams"},
    {"name": "Enterprise Pack", "points": 1000, "price": 80, "description": "For large-scale operations"},
]


def _check_positive(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidArgument(f"{field} must be a positive whole number")
    return value


def list_packages(db: Session, include_inactive: bool = False) -> List[PointPackage]:
    query = db.query(PointPackage)
    if not include_inactive:
        query = query.filter(PointPackage.is_active.is_(True))
    return query.order_by(PointPackage.points.asc()).all()


def create_package(db: Session, actor: Actor, name: str, points: int, price: int, description: str = "") -> PointPackage:
    actor = require_role(actor, Role.ADMIN, message="Only admins can create packages")
    if not name or not name.strip():
        raise InvalidArgument("name is required")
    package = PointPackage(
        name=name.strip(),
        points=_check_positive(points, "points"),
        price=_check_positive(price, "price"),
        description=(description or "").strip(),
        is_active=True,
    )
    with unit_of_work(db):
        db.add(package)
        db.flush()
    logger.info("Admin %s created package %s (%s points)", actor.id, package.id, package.points)
    return package


def set_package_active(db: Session, actor: Actor, package_id: PackageId, is_active: bool) -> PointPackage:
    actor = require_role(actor, Role.ADMIN, message="Only admins can manage packages")
    package = db.query(PointPackage).filter(PointPackage.id == package_id).first()
    if not package:
        raise NotFound(f"Package {package_id} not found")
    with unit_of_work(db):
        package.is_active = bool(is_active)
    return package


def purchase_points(db: Session, actor: Actor, package_id: PackageId) -> Transaction:
    actor = require_role(actor, Role.COMPANY, message="Only companies can purchase points")
    package = db.query(PointPackage).filter(PointPackage.id == package_id).first()
    if not package or not package.is_active:
        raise NotFound("Package not available")

    with unit_of_work(db):
        tx = ledger.credit(
            db,
            actor.id,
            package.points,
            f"Purchased {package.name}",
            type_=TransactionType.PURCHASE,
            package_id=package_id,
        )
    logger.info("Company %s bought package %s (+%s points)", actor.id, package_id, package.points)
    return tx


def seed_default_packages(db: Session) -> int:
    if db.query(PointPackage.id).first():
        return 0
    with unit_of_work(db):
        for item in DEFAULT_PACKAGES:
            db.add(PointPackage(is_active=True, **item))
    logger.info("Seeded %s default point packages", len(DEFAULT_PACKAGES))
    return len(DEFAULT_PACKAGES)
