"""
Package catalogue, purchases and expert subscriptions.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import require_driver, require_expert
from core.database import get_db
from models.package import DiagnosisPackage, LeadPackage, SubscriptionPlan
from models.user import User
from repositories.package import PackageRepository
from schemas.package import (
    DiagnosisPackagePurchaseRead,
    DiagnosisPackageRead,
    ExpertSubscriptionRead,
    LeadPackagePurchaseRead,
    LeadPackageRead,
    PaymentRead,
    PurchaseRequest,
    SubscribeRequest,
    SubscriptionPlanRead,
)
from schemas.responses import StandardSuccessResponse
from services.payment_service import (
    cancel_subscription,
    purchase_diagnosis_package,
    purchase_lead_package,
    subscribe,
)

router = APIRouter()


@router.get("/diagnosis", response_model=StandardSuccessResponse)
async def diagnosis_packages(db: AsyncSession = Depends(get_db)):
    packages = await PackageRepository(db).active_catalogue(DiagnosisPackage)
    return {"success": True, "message": "Success", "data": [DiagnosisPackageRead.model_validate(p) for p in packages]}


@router.get("/lead", response_model=StandardSuccessResponse)
async def lead_packages(db: AsyncSession = Depends(get_db)):
    packages = await PackageRepository(db).active_catalogue(LeadPackage)
    return {"success": True, "message": "Success", "data": [LeadPackageRead.model_validate(p) for p in packages]}


@router.get("/subscription", response_model=StandardSuccessResponse)
async def subscription_plans(db: AsyncSession = Depends(get_db)):
    plans = await PackageRepository(db).active_catalogue(SubscriptionPlan)
    return {"success": True, "message": "Success", "data": [SubscriptionPlanRead.model_validate(p) for p in plans]}


@router.post("/diagnosis/purchase", response_model=StandardSuccessResponse, status_code=status.HTTP_201_CREATED)
async def buy_diagnosis_package(
    body: PurchaseRequest,
    current_user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    package = await PackageRepository(db).get_diagnosis_package(body.package_id)
    if not package:
        raise HTTPException(status_code=404, detail="Package not found")

    purchase, payment = await purchase_diagnosis_package(db, current_user, package, body.provider_reference)
    return {
        "success": True,
        "message": "Package purchased",
        "data": {
            "purchase": DiagnosisPackagePurchaseRead.model_validate(purchase),
            "payment": PaymentRead.model_validate(payment),
        },
    }


@router.post("/lead/purchase", response_model=StandardSuccessResponse, status_code=status.HTTP_201_CREATED)
async def buy_lead_package(
    body: PurchaseRequest,
    current_user: User = Depends(require_expert),
    db: AsyncSession = Depends(get_db),
):
    package = await PackageRepository(db).get_lead_package(body.package_id)
    if not package:
        raise HTTPException(status_code=404, detail="Package not found")

    purchase, payment = await purchase_lead_package(db, current_user, package, body.provider_reference)
    return {
        "success": True,
        "message": "Package purchased",
        "data": {
            "purchase": LeadPackagePurchaseRead.model_validate(purchase),
            "payment": PaymentRead.model_validate(payment),
        },
    }


@router.get("/lead/purchases", response_model=StandardSuccessResponse)
async def my_lead_purchases(current_user: User = Depends(require_expert), db: AsyncSession = Depends(get_db)):
    purchases = await PackageRepository(db).lead_purchases(current_user.id)
    return {"success": True, "message": "Success", "data": [LeadPackagePurchaseRead.model_validate(p) for p in purchases]}


@router.get("/subscription/current", response_model=StandardSuccessResponse)
async def current_subscription(current_user: User = Depends(require_expert), db: AsyncSession = Depends(get_db)):
    subscription = await PackageRepository(db).active_subscription(current_user.id)
    data = ExpertSubscriptionRead.model_validate(subscription) if subscription else None
    return {"success": True, "message": "Success", "data": data}


@router.post("/subscription/subscribe", response_model=StandardSuccessResponse, status_code=status.HTTP_201_CREATED)
async def start_subscription(
    body: SubscribeRequest,
    current_user: User = Depends(require_expert),
    db: AsyncSession = Depends(get_db),
):
    plan = await PackageRepository(db).get_plan(body.plan_id)
    if not plan:
        raise HTTPException(status_code=404, detail="Plan not found")

    subscription, payment = await subscribe(db, current_user, plan, body.auto_renew, body.provider_reference)
    return {
        "success": True,
        "message": "Subscription started",
        "data": {
            "subscription": ExpertSubscriptionRead.model_validate(subscription),
            "payment": PaymentRead.model_validate(payment),
        },
    }


@router.post("/subscription/cancel", response_model=StandardSuccessResponse)
async def stop_subscription(current_user: User = Depends(require_expert), db: AsyncSession = Depends(get_db)):
    subscription = await PackageRepository(db).active_subscription(current_user.id)
    if not subscription:
        raise HTTPException(status_code=404, detail="No active subscription")

    subscription = await cancel_subscription(db, current_user, subscription)
    return {
        "success": True,
        "message": "Subscription cancelled. It stays active until the end of the billing period.",
        "data": ExpertSubscriptionRead.model_validate(subscription),
    }
