"""
Property submission workflow: collect form fields + attachments, validate,
upload files, then create or update the listing.

One submission moves EDITING -> VALIDATING -> UPLOADING -> PERSISTING -> DONE,
or ends in FAILED. Validation problems send it back to EDITING without any
store call. Upload/persist failures delete the objects uploaded so far
(best effort) and raise a single SubmissionError; the form stays populated.
"""
import enum
import logging
import secrets
import time
from dataclasses import dataclass, field, fields as dataclass_fields
from io import BytesIO
from pathlib import PurePosixPath
from typing import Any, Iterable, Optional

from pypdf import PdfReader
from pypdf.errors import PdfReadError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from findmyestate.core.config import settings
from findmyestate.core.errors import (
    AuthenticationRequired,
    EstateError,
    FormValidationError,
    NotFound,
    OwnershipError,
    RemoteCallError,
    StorageError,
    SubmissionError,
)
from findmyestate.models.property import Property, PropertyCategory, PropertyStatus
from findmyestate.models.user import User
from findmyestate.storage.object_storage import LocalObjectStorage

logger = logging.getLogger(__name__)

NUMERIC_FIELDS = ("price", "bedrooms", "bathrooms", "area")
REQUIRED_TEXT_FIELDS = ("title", "address", "city", "state", "zip_code", "description")
TAX_RECEIPT_FOLDER = "tax-receipts"
# Numeric columns are 32-bit INTEGER
MAX_NUMERIC_VALUE = 2_147_483_647
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


class SubmissionState(str, enum.Enum):
    EDITING = "editing"
    VALIDATING = "validating"
    UPLOADING = "uploading"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


@dataclass
class Attachment:
    """A file picked by the user, held in memory until upload."""

    filename: str
    content_type: str
    data: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class FileRejection:
    filename: str
    message: str


@dataclass
class PropertyForm:
    """Raw text inputs, exactly as typed. Parsed only at submit time."""

    title: str = ""
    price: str = ""
    property_type: str = ""
    bedrooms: str = ""
    bathrooms: str = ""
    area: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    description: str = ""

    @classmethod
    def from_property(cls, prop: Property) -> "PropertyForm":
        values = {f.name: getattr(prop, f.name) for f in dataclass_fields(cls)}
        return cls(**{name: "" if v is None else str(v) for name, v in values.items()})


# ── File checks ──────────────────────────────────────────────────────


def validate_image(attachment: Attachment) -> Optional[str]:
    """Return a rejection message, or None if the image is acceptable."""
    if not (attachment.content_type or "").lower().startswith("image/"):
        return f"{attachment.filename} is not an image file"
    if attachment.size > settings.max_upload_bytes:
        return f"{attachment.filename} exceeds {settings.max_upload_mb}MB size limit"
    return None


def _is_readable_pdf(data: bytes) -> bool:
    try:
        return len(PdfReader(BytesIO(data)).pages) > 0
    except (PdfReadError, ValueError, KeyError, OSError):
        return False


def validate_verification_document(attachment: Attachment) -> Optional[str]:
    """Tax receipt: image or PDF under the size limit; PDFs must actually parse."""
    content_type = (attachment.content_type or "").lower()
    is_pdf = content_type == "application/pdf"
    if not (content_type.startswith("image/") or is_pdf):
        return "Tax receipt must be an image or PDF file"
    if attachment.size > settings.max_upload_bytes:
        return f"File exceeds {settings.max_upload_mb}MB size limit"
    if is_pdf and not _is_readable_pdf(attachment.data):
        return f"{attachment.filename} is not a readable PDF"
    return None


def _base36_suffix(length: int = 6) -> str:
    return "".join(secrets.choice(_BASE36) for _ in range(length))


def build_object_path(
    owner_id: str,
    filename: str,
    folder: Optional[str] = None,
    now_ms: Optional[int] = None,
) -> str:
    """
    Storage key for an upload: <owner>/[<folder>/]<epoch ms>-<random>.<ext>.
    The original extension is kept; the timestamp + random suffix avoid collisions.
    """
    name = PurePosixPath((filename or "").replace("\\", "/")).name
    ext = name.rsplit(".", 1)[-1] if name else ""
    ts = now_ms if now_ms is not None else int(time.time() * 1000)
    prefix = f"{owner_id}/{folder}" if folder else owner_id
    return f"{prefix}/{ts}-{_base36_suffix()}.{ext or 'bin'}"


def parse_numeric_fields(form: PropertyForm) -> dict[str, int]:
    """Parse price/bedrooms/bathrooms/area as integers in 0..MAX_NUMERIC_VALUE or raise FormValidationError."""
    values: dict[str, int] = {}
    bad: list[str] = []
    too_large: list[str] = []
    for name in NUMERIC_FIELDS:
        raw = (getattr(form, name) or "").strip()
        try:
            value = int(raw)
        except ValueError:
            bad.append(name)
            continue
        if value < 0:
            bad.append(name)
            continue
        if value > MAX_NUMERIC_VALUE:
            too_large.append(name)
            continue
        values[name] = value
    if bad or too_large:
        errors = [f"{name} must be a whole number" for name in bad]
        errors += [f"{name} must be at most {MAX_NUMERIC_VALUE}" for name in too_large]
        raise FormValidationError(
            f"Please enter whole numbers for: {', '.join(bad + too_large)}",
            errors=errors,
        )
    return values


# ── Workflow ─────────────────────────────────────────────────────────


class PropertySubmission:
    """A single create (property_id=None) or edit submission for one user."""

    def __init__(
        self,
        db: Session,
        storage: LocalObjectStorage,
        user: Optional[User],
        property_id: Optional[str] = None,
        form: Optional[PropertyForm] = None,
    ):
        self.db = db
        self.storage = storage
        self.user = user
        self.property_id = property_id
        self.form = form or PropertyForm()
        self.state = SubmissionState.EDITING
        self.existing_images: list[str] = []
        self.new_images: list[Attachment] = []
        self.verification_document: Optional[Attachment] = None
        self.rejections: list[FileRejection] = []
        self._loaded = False

    @property
    def is_edit_mode(self) -> bool:
        return self.property_id is not None

    @property
    def action_label(self) -> str:
        return "update" if self.is_edit_mode else "list"

    def load(self) -> Property:
        """Edit mode: fetch the listing, check ownership, populate the form."""
        if not self.is_edit_mode:
            raise ValueError("load() is only available in edit mode")
        prop = self._fetch_owned()
        self.form = PropertyForm.from_property(prop)
        self.existing_images = list(prop.images or [])
        self._loaded = True
        return prop

    # -- attachments ---------------------------------------------------

    def add_images(self, attachments: Iterable[Attachment]) -> list[FileRejection]:
        """Queue valid images; invalid ones are rejected one by one."""
        rejected: list[FileRejection] = []
        for attachment in attachments:
            message = validate_image(attachment)
            if message:
                logger.info("Rejected image %s: %s", attachment.filename, message)
                rejected.append(FileRejection(attachment.filename, message))
            else:
                self.new_images.append(attachment)
        self.rejections.extend(rejected)
        return rejected

    def remove_image(self, index: int) -> None:
        """Drop an image by position in existing + queued order."""
        if index < 0:
            raise IndexError(index)
        if index < len(self.existing_images):
            del self.existing_images[index]
        else:
            del self.new_images[index - len(self.existing_images)]

    def remove_existing_image(self, url: str) -> bool:
        if url in self.existing_images:
            self.existing_images.remove(url)
            return True
        return False

    def set_verification_document(self, attachment: Attachment) -> None:
        message = validate_verification_document(attachment)
        if message:
            self.rejections.append(FileRejection(attachment.filename, message))
            raise FormValidationError(message, errors=[message])
        self.verification_document = attachment

    def clear_verification_document(self) -> None:
        self.verification_document = None

    # -- submit --------------------------------------------------------

    def submit(self) -> Property:
        """Validate, upload, persist. Returns the saved listing."""
        if self.user is None:
            raise AuthenticationRequired("Please sign in to list a property")

        self.state = SubmissionState.VALIDATING
        current: Optional[Property] = None
        try:
            values = self._validated_values()
            if self.is_edit_mode:
                # Ownership is checked again right before any write
                current = self._fetch_owned()
                if not self._loaded:
                    self.existing_images = list(current.images or [])
                    self._loaded = True
        except EstateError:
            self.state = SubmissionState.EDITING
            raise

        uploaded: list[str] = []
        superseded: list[str] = []
        try:
            self.state = SubmissionState.UPLOADING
            image_urls = [self._upload(att, None, uploaded) for att in self.new_images]
            receipt_url = None
            if self.verification_document is not None:
                receipt_url = self._upload(self.verification_document, TAX_RECEIPT_FOLDER, uploaded)

            self.state = SubmissionState.PERSISTING
            if current is None:
                record = self._insert(values, image_urls, receipt_url)
            else:
                superseded = self._superseded_urls(current, receipt_url)
                record = self._update(current, values, image_urls, receipt_url)
        except (StorageError, SQLAlchemyError) as e:
            self.state = SubmissionState.FAILED
            self.db.rollback()
            logger.error("Error saving property (%s): %s", self.action_label, e)
            self._discard_uploads(uploaded)
            raise SubmissionError(f"Failed to {self.action_label} property. Please try again.") from e
        except Exception:
            self.state = SubmissionState.FAILED
            self.db.rollback()
            logger.exception("Unexpected error saving property (%s)", self.action_label)
            self._discard_uploads(uploaded)
            raise

        self.state = SubmissionState.DONE
        self.property_id = record.id
        self.existing_images = list(record.images or [])
        self.new_images = []
        self.verification_document = None
        self._discard_uploads([k for k in map(self.storage.key_from_url, superseded) if k])
        logger.info(
            "Property %s %s by user %s (%d new images)",
            record.id, "updated" if current is not None else "created", self.user.id, len(image_urls),
        )
        return record

    def _validated_values(self) -> dict[str, Any]:
        if not self.is_edit_mode and self.verification_document is None:
            raise FormValidationError("Please upload a tax receipt to proceed")

        errors = [f"{name} is required" for name in REQUIRED_TEXT_FIELDS if not getattr(self.form, name).strip()]

        category = None
        try:
            category = PropertyCategory(self.form.property_type.strip().lower())
        except ValueError:
            allowed = ", ".join(c.value for c in PropertyCategory)
            errors.append(f"property_type must be one of: {allowed}")

        numbers: dict[str, int] = {}
        try:
            numbers = parse_numeric_fields(self.form)
        except FormValidationError as e:
            errors.extend(e.errors)

        if errors:
            raise FormValidationError("Please correct the highlighted fields", errors=errors)

        return {
            "title": self.form.title.strip(),
            "description": self.form.description.strip(),
            "property_type": category.value,
            "address": self.form.address.strip(),
            "city": self.form.city.strip(),
            "state": self.form.state.strip(),
            "zip_code": self.form.zip_code.strip(),
            **numbers,
        }

    def _fetch_owned(self) -> Property:
        if self.user is None:
            raise AuthenticationRequired("Please sign in to edit properties")
        try:
            prop = self.db.query(Property).filter(Property.id == self.property_id).first()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Error loading property %s: %s", self.property_id, e)
            raise RemoteCallError("Failed to load property data") from e
        if prop is None:
            raise NotFound("Failed to load property data")
        if prop.seller_id != self.user.id:
            logger.warning("User %s tried to edit property %s owned by %s", self.user.id, prop.id, prop.seller_id)
            raise OwnershipError("You can only edit your own properties")
        return prop

    def _upload(self, attachment: Attachment, folder: Optional[str], uploaded: list[str]) -> str:
        key = build_object_path(self.user.id, attachment.filename, folder)
        self.storage.upload(key, attachment.data, attachment.content_type)
        uploaded.append(key)
        return self.storage.public_url(key)

    def _insert(self, values: dict[str, Any], image_urls: list[str], receipt_url: Optional[str]) -> Property:
        record = Property(
            seller_id=self.user.id,
            images=image_urls,
            tax_receipt_url=receipt_url,
            status=PropertyStatus.PENDING.value,
            featured=False,
            **values,
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record

    def _update(
        self,
        prop: Property,
        values: dict[str, Any],
        image_urls: list[str],
        receipt_url: Optional[str],
    ) -> Property:
        for name, value in values.items():
            setattr(prop, name, value)
        prop.images = list(self.existing_images) + image_urls
        if receipt_url:
            prop.tax_receipt_url = receipt_url
        # Every edit goes back through moderation
        prop.status = PropertyStatus.PENDING.value
        prop.featured = False
        self.db.commit()
        self.db.refresh(prop)
        return prop

    def _superseded_urls(self, prop: Property, receipt_url: Optional[str]) -> list[str]:
        """Stored files the update drops: removed images, and the old receipt when replaced."""
        urls = [u for u in (prop.images or []) if u not in self.existing_images]
        if receipt_url and prop.tax_receipt_url:
            urls.append(prop.tax_receipt_url)
        return urls

    def _discard_uploads(self, keys: list[str]) -> None:
        if not keys:
            return
        try:
            removed = self.storage.remove(keys)
            logger.info("Removed %d stored object(s)", len(removed))
        except StorageError as e:
            # Left for the orphan cleanup job
            logger.warning("Could not remove %d stored object(s): %s", len(keys), e)
