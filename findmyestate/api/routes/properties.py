"""Property listing endpoints: browse, view, create and edit (multipart)."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session

from findmyestate.api.schemas.property import (
    FileRejectionOut,
    OwnerPropertyRead,
    PropertyListResponse,
    PropertyRead,
    SubmissionResponse,
)
from findmyestate.core.auth import get_current_user, get_optional_user
from findmyestate.core.errors import NotFound
from findmyestate.db.session import get_db
from findmyestate.models.property import Property, PropertyStatus
from findmyestate.models.user import User
from findmyestate.models.user_role import AppRole
from findmyestate.services.role_service import has_role
from findmyestate.services.submission_service import (
    Attachment,
    FileRejection,
    PropertyForm,
    PropertySubmission,
)
from findmyestate.storage.object_storage import LocalObjectStorage, get_storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/properties", tags=["properties"])


class PropertyFormFields:
    """Multipart text fields. Omitted fields keep their loaded value in edit mode."""

    def __init__(
        self,
        title: Optional[str] = Form(None),
        price: Optional[str] = Form(None),
        property_type: Optional[str] = Form(None),
        bedrooms: Optional[str] = Form(None),
        bathrooms: Optional[str] = Form(None),
        area: Optional[str] = Form(None),
        address: Optional[str] = Form(None),
        city: Optional[str] = Form(None),
        state: Optional[str] = Form(None),
        zip_code: Optional[str] = Form(None),
        description: Optional[str] = Form(None),
    ):
        self.values = {
            "title": title,
            "price": price,
            "property_type": property_type,
            "bedrooms": bedrooms,
            "bathrooms": bathrooms,
            "area": area,
            "address": address,
            "city": city,
            "state": state,
            "zip_code": zip_code,
            "description": description,
        }

    def apply(self, form: PropertyForm) -> PropertyForm:
        for name, value in self.values.items():
            if value is not None:
                setattr(form, name, value)
        return form


async def _read_attachments(files: Optional[list[UploadFile]]) -> list[Attachment]:
    attachments: list[Attachment] = []
    for upload in files or []:
        if upload is None or not upload.filename:
            continue
        attachments.append(
            Attachment(
                filename=upload.filename,
                content_type=upload.content_type or "application/octet-stream",
                data=await upload.read(),
            )
        )
    return attachments


def _rejections_out(rejections: list[FileRejection]) -> list[FileRejectionOut]:
    return [FileRejectionOut(filename=r.filename, message=r.message) for r in rejections]


def _can_see_private(prop: Property, user: Optional[User], db: Session) -> bool:
    if user is None:
        return False
    return prop.seller_id == user.id or has_role(db, user.id, AppRole.ADMIN)


@router.get("", response_model=PropertyListResponse)
async def list_properties(
    property_type: Optional[str] = Query(None, description="house, apartment, condo, land, commercial"),
    city: Optional[str] = Query(None),
    featured: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(24, ge=1, le=100),
    db: Session = Depends(get_db),
) -> PropertyListResponse:
    """Browse available listings: featured first, then newest."""
    query = db.query(Property).filter(Property.status == PropertyStatus.AVAILABLE.value)
    if property_type:
        query = query.filter(Property.property_type == property_type.strip().lower())
    if city:
        query = query.filter(Property.city.ilike(city.strip()))
    if featured is not None:
        query = query.filter(Property.featured.is_(featured))

    total = query.count()
    rows = (
        query.order_by(Property.featured.desc(), Property.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return PropertyListResponse(
        total=total,
        page=page,
        page_size=page_size,
        items=[PropertyRead.model_validate(p) for p in rows],
    )


@router.get("/mine", response_model=list[OwnerPropertyRead])
async def my_properties(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[OwnerPropertyRead]:
    """The signed-in user's listings, any status, newest first."""
    rows = (
        db.query(Property)
        .filter(Property.seller_id == current_user.id)
        .order_by(Property.created_at.desc())
        .all()
    )
    return [OwnerPropertyRead.model_validate(p) for p in rows]


@router.get("/{property_id}", response_model=OwnerPropertyRead)
async def get_property(
    property_id: str,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
) -> OwnerPropertyRead:
    """One listing. Pending/rejected listings are only visible to their owner and admins."""
    prop = db.query(Property).filter(Property.id == property_id).first()
    if prop is None:
        raise NotFound("Property not found")
    private = _can_see_private(prop, current_user, db)
    if prop.status != PropertyStatus.AVAILABLE.value and not private:
        raise NotFound("Property not found")
    out = OwnerPropertyRead.model_validate(prop)
    if not private:
        out = out.model_copy(update={"tax_receipt_url": None})
    return out


@router.post("", response_model=SubmissionResponse, status_code=201)
async def create_property(
    fields: PropertyFormFields = Depends(),
    images: Optional[list[UploadFile]] = File(None),
    tax_receipt: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    storage: LocalObjectStorage = Depends(get_storage),
    current_user: Optional[User] = Depends(get_optional_user),
) -> SubmissionResponse:
    """List a new property. A tax receipt is required; it starts out pending review."""
    submission = PropertySubmission(db, storage, current_user, form=fields.apply(PropertyForm()))
    submission.add_images(await _read_attachments(images))
    for receipt in await _read_attachments([tax_receipt] if tax_receipt else []):
        submission.set_verification_document(receipt)

    record = submission.submit()
    return SubmissionResponse(
        message="Property listed successfully!",
        property=OwnerPropertyRead.model_validate(record),
        rejected_files=_rejections_out(submission.rejections),
    )


@router.put("/{property_id}", response_model=SubmissionResponse)
async def update_property(
    property_id: str,
    fields: PropertyFormFields = Depends(),
    images: Optional[list[UploadFile]] = File(None),
    tax_receipt: Optional[UploadFile] = File(None),
    remove_images: Optional[list[str]] = Form(None),
    db: Session = Depends(get_db),
    storage: LocalObjectStorage = Depends(get_storage),
    current_user: Optional[User] = Depends(get_optional_user),
) -> SubmissionResponse:
    """Edit an owned listing. Existing images are kept, new ones appended; status resets to pending."""
    submission = PropertySubmission(db, storage, current_user, property_id=property_id)
    submission.load()
    fields.apply(submission.form)
    for url in remove_images or []:
        submission.remove_existing_image(url)
    submission.add_images(await _read_attachments(images))
    for receipt in await _read_attachments([tax_receipt] if tax_receipt else []):
        submission.set_verification_document(receipt)

    record = submission.submit()
    return SubmissionResponse(
        message="Property updated successfully!",
        property=OwnerPropertyRead.model_validate(record),
        rejected_files=_rejections_out(submission.rejections),
    )
