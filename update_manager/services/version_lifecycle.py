"""
Version lifecycle engine

draft -> pending_review -> approved -> released -> deprecated -> eol

released -> eol is allowed as an administrative shortcut. Every transition
is a compare-and-swap on (id, expected_state). Packages attach only while
the version is a draft.
"""

from datetime import datetime
from typing import Any, BinaryIO, Dict, List, Optional, Tuple
import uuid

from sqlmodel import Session
import structlog

from update_manager.core.concurrency import Deadline
from update_manager.core.errors import Conflict, InvalidState, NotFound
from update_manager.core.events import EventBus, VersionReleased, event_bus as default_event_bus
from update_manager.core.pagination import Pagination
from update_manager.core.timeutil import utc_now
from update_manager.models.filters import VersionFilter
from update_manager.models.product import Product
from update_manager.models.version import (
    PackageInfo, PackageType, ReleaseType, Version, VersionState
)
from update_manager.services.lookup import as_uuid, find_by_ref
from update_manager.services.package_storage import PackageStorage
from update_manager.services.version_store import VersionStore

logger = structlog.get_logger(__name__)

ATTACH_RETRIES = 3

# Fields a draft may change
MUTABLE_FIELDS = (
    "release_type",
    "release_date",
    "eol_date",
    "min_server_version",
    "max_server_version",
    "recommended_server_version",
    "release_notes",
)


class VersionLifecycle:
    """Validates and executes version state transitions"""

    def __init__(
        self,
        session: Session,
        event_bus: Optional[EventBus] = None,
        storage: Optional[PackageStorage] = None
    ):
        self.session = session
        self.store = VersionStore(session)
        self.event_bus = event_bus or default_event_bus
        self.storage = storage

    # Queries
    def get_version(self, version_id) -> Version:
        surrogate = as_uuid(version_id)
        version = self.store.get(surrogate) if surrogate else None
        if version is None:
            raise NotFound.for_resource("Version", version_id)
        return version

    def get_version_by_number(self, product_ref: str, version_number: str) -> Version:
        product = self._product(product_ref)
        version = self.store.get_by_number(product.product_id, version_number)
        if version is None:
            raise NotFound(f"Version {version_number} not found for product {product.product_id}")
        return version

    def list_versions(self, filters: VersionFilter, pagination: Pagination) -> Tuple[List[Version], int]:
        return self.store.list(filters, pagination)

    def list_packages(self, version_id) -> List[PackageInfo]:
        return self.get_version(version_id).package_list()

    def get_package(self, version_id, package_id) -> Tuple[Version, PackageInfo]:
        version = self.get_version(version_id)
        package = version.find_package(as_uuid(package_id)) if as_uuid(package_id) else None
        if package is None:
            raise NotFound.for_resource("Package", package_id)
        return version, package

    # Creation and editing
    def create_version(
        self,
        product_ref: str,
        version_number: str,
        release_type: ReleaseType,
        release_date: datetime,
        created_by: str,
        eol_date: Optional[datetime] = None,
        min_server_version: Optional[str] = None,
        max_server_version: Optional[str] = None,
        recommended_server_version: Optional[str] = None,
        release_notes: Optional[Dict[str, Any]] = None
    ) -> Version:
        product = self._product(product_ref)
        version = Version(
            product_id=product.product_id,
            version_number=version_number,
            release_type=release_type,
            release_date=release_date,
            eol_date=eol_date,
            min_server_version=min_server_version,
            max_server_version=max_server_version,
            recommended_server_version=recommended_server_version,
            release_notes=release_notes,
            created_by=created_by,
            state=VersionState.DRAFT,
        )
        version = self.store.insert(version)
        logger.info(f"Created version {version.version_number} for product {product.product_id}")
        return version

    def update_draft(self, version_id, patch: Dict[str, Any]) -> Version:
        """Apply a partial update to a draft version"""
        version = self.get_version(version_id)
        if not version.can_modify():
            raise InvalidState(f"Version in state {version.state.value} cannot be modified")

        values = {k: v for k, v in patch.items() if k in MUTABLE_FIELDS}
        if not values:
            return version

        if not self.store.compare_and_set_draft(version.id, version.revision, **values):
            current = self.get_version(version.id)
            if not current.can_modify():
                raise InvalidState(f"Version in state {current.state.value} cannot be modified")
            raise Conflict("Version was modified concurrently, retry the update")
        return self.get_version(version.id)

    # Transitions
    def submit_for_review(self, version_id, user_id: str, deadline: Optional[Deadline] = None) -> Version:
        return self._transition(version_id, VersionState.PENDING_REVIEW, deadline)

    def approve(self, version_id, approved_by: str, deadline: Optional[Deadline] = None) -> Version:
        return self._transition(
            version_id,
            VersionState.APPROVED,
            deadline,
            approved_by=approved_by,
            approved_at=utc_now(),
        )

    def release(self, version_id, user_id: str, deadline: Optional[Deadline] = None) -> Version:
        version = self._transition(version_id, VersionState.RELEASED, deadline)
        # Published only after the state change is committed
        self.event_bus.publish(VersionReleased(
            product_id=version.product_id,
            version_id=version.id,
            version_number=version.version_number,
            released_by=user_id,
        ))
        return version

    def deprecate(self, version_id, user_id: str, deadline: Optional[Deadline] = None) -> Version:
        return self._transition(version_id, VersionState.DEPRECATED, deadline)

    def end_of_life(self, version_id, user_id: str, deadline: Optional[Deadline] = None) -> Version:
        return self._transition(version_id, VersionState.EOL, deadline)

    def _transition(
        self,
        version_id,
        target: VersionState,
        deadline: Optional[Deadline],
        **values
    ) -> Version:
        if deadline is not None:
            deadline.check(f"moving version to {target.value}")

        version = self.get_version(version_id)
        current = VersionState(version.state)
        if not version.can_transition_to(target):
            raise InvalidState(
                f"Cannot move version {version.version_number} from {current.value} to {target.value}"
            )

        if not self.store.compare_and_set_state(version.id, current, target, **values):
            latest = self.store.get(version.id)
            if latest is None:
                raise NotFound.for_resource("Version", version_id)
            raise InvalidState(
                f"Version {latest.version_number} is {latest.state.value}, expected {current.value}"
            )
        return self.get_version(version.id)

    # Packages
    def attach_package(self, version_id, package: PackageInfo) -> Version:
        """Append package metadata to a draft version"""
        for _ in range(ATTACH_RETRIES):
            version = self.get_version(version_id)
            if not version.can_attach_package():
                raise InvalidState(
                    f"Packages can only be attached to draft versions, version is {version.state.value}"
                )
            packages = list(version.packages or []) + [package.model_dump(mode="json")]
            if self.store.compare_and_set_draft(version.id, version.revision, packages=packages):
                logger.info(f"Attached package {package.id} to version {version.id}")
                return self.get_version(version.id)
        raise Conflict("Version was modified concurrently, retry the upload")

    def upload_package(
        self,
        version_id,
        file_name: str,
        source: BinaryIO,
        package_type: PackageType,
        uploaded_by: str,
        os_name: Optional[str] = None,
        architecture: Optional[str] = None,
        digital_signature: Optional[str] = None,
        download_prefix: str = "/api/v1/versions"
    ) -> PackageInfo:
        """Store the bytes of a package and attach its metadata"""
        version = self.get_version(version_id)
        if not version.can_attach_package():
            raise InvalidState(
                f"Packages can only be attached to draft versions, version is {version.state.value}"
            )

        package_id = uuid.uuid4()
        path, size, checksum = self.storage.save(version.id, package_id, file_name, source)
        package = PackageInfo(
            id=package_id,
            package_type=package_type,
            file_name=file_name,
            file_size=size,
            checksum_sha256=checksum,
            os=os_name,
            architecture=architecture,
            digital_signature=digital_signature,
            download_url=f"{download_prefix}/{version.id}/packages/{package_id}/download",
            uploaded_by=uploaded_by,
        )
        try:
            self.attach_package(version.id, package)
        except BaseException:
            self.storage.remove(path)
            raise
        return package

    def _product(self, product_ref: str) -> Product:
        product = find_by_ref(self.session, Product, "product_id", product_ref)
        if product is None:
            raise NotFound.for_resource("Product", product_ref)
        return product
