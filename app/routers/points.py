from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.security import get_current_actor
from app.database.connection import get_db
from app.schemas import (
    PackageActiveRequest,
    PackageCreate,
    PackageOut,
    PurchasePointsRequest,
    TransactionOut,
)
from app.services import ledger, packages
from app.services.actor import Actor, PackageId

router = APIRouter(tags=["points"])


@router.get("/packages", response_model=List[PackageOut])
def list_packages(include_inactive: bool = Query(False), db: Session = Depends(get_db)):
    return packages.list_packages(db, include_inactive)


@router.post("/packages", response_model=PackageOut, status_code=status.HTTP_201_CREATED)
def create_package(body: PackageCreate, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return packages.create_package(db, actor, body.name, body.points, body.price, body.description)


@router.post("/packages/{package_id}/active", response_model=PackageOut)
def set_package_active(
    package_id: int,
    body: PackageActiveRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return packages.set_package_active(db, actor, PackageId(package_id), body.is_active)


@router.post("/points/purchase", response_model=TransactionOut)
def purchase_points(body: PurchasePointsRequest, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return packages.purchase_points(db, actor, PackageId(body.package_id))


@router.get("/transactions", response_model=List[TransactionOut])
def my_transactions(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return ledger.list_transactions(db, actor)
