"""
Update detections and rollouts

Bookkeeping only: endpoints report what they run and what they could run,
rollouts record the progress of applying an update.
"""

from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlmodel import Session, select
import structlog

from update_manager.core.errors import InvalidRequest, InvalidState, NotFound
from update_manager.core.pagination import Pagination
from update_manager.core.timeutil import utc_now
from update_manager.models.filters import DetectionFilter, RolloutFilter
from update_manager.models.product import Product
from update_manager.models.update_detection import UpdateDetection
from update_manager.models.update_rollout import RolloutStatus, UpdateRollout
from update_manager.models.version import Version, VersionState
from update_manager.services.lookup import as_uuid, find_by_ref
from update_manager.services.version_store import VersionStore

logger = structlog.get_logger(__name__)


class UpdateTrackingService:

    def __init__(self, session: Session):
        self.session = session
        self.versions = VersionStore(session)

    def _product(self, product_ref: str) -> Product:
        product = find_by_ref(self.session, Product, "product_id", product_ref)
        if product is None:
            raise NotFound.for_resource("Product", product_ref)
        return product

    def _version(self, product_id: str, version_number: str) -> Version:
        version = self.versions.get_by_number(product_id, version_number)
        if version is None:
            raise NotFound(f"Version {version_number} not found for product {product_id}")
        return version

    def _released_version(self, product_id: str, version_number: str) -> Version:
        version = self._version(product_id, version_number)
        if version.state != VersionState.RELEASED:
            raise InvalidRequest(f"Version {version_number} is not released")
        return version

    # Detections
    def _find_detection(self, endpoint_id: str, product_id: str) -> Optional[UpdateDetection]:
        return self.session.exec(
            select(UpdateDetection).where(
                UpdateDetection.endpoint_id == endpoint_id,
                UpdateDetection.product_id == product_id,
            )
        ).first()

    def report_detection(
        self,
        endpoint_id: str,
        product_ref: str,
        current_version: str,
        available_version: str
    ) -> UpdateDetection:
        """Record or refresh the detection of an endpoint for a product"""
        product = self._product(product_ref)
        self._version(product.product_id, current_version)
        self._released_version(product.product_id, available_version)

        now = utc_now()
        detection = self._find_detection(endpoint_id, product.product_id)
        if detection is None:
            detection = UpdateDetection(
                endpoint_id=endpoint_id,
                product_id=product.product_id,
                current_version=current_version,
                available_version=available_version,
                detected_at=now,
            )
        else:
            if detection.available_version != available_version:
                detection.detected_at = now
            detection.current_version = current_version
            detection.available_version = available_version
        detection.last_checked_at = now
        detection.updated_at = now

        self.session.add(detection)
        self.session.commit()
        self.session.refresh(detection)
        logger.info(f"Endpoint {endpoint_id} can update {product.product_id} to {available_version}")
        return detection

    def get_detection(self, endpoint_id: str, product_ref: str) -> UpdateDetection:
        product = self._product(product_ref)
        detection = self._find_detection(endpoint_id, product.product_id)
        if detection is None:
            raise NotFound(f"No update detection for endpoint {endpoint_id} and product {product.product_id}")
        return detection

    def update_available_version(self, endpoint_id: str, product_ref: str, available_version: str) -> UpdateDetection:
        detection = self.get_detection(endpoint_id, product_ref)
        self._released_version(detection.product_id, available_version)

        now = utc_now()
        if detection.available_version != available_version:
            detection.detected_at = now
        detection.available_version = available_version
        detection.last_checked_at = now
        detection.updated_at = now
        self.session.add(detection)
        self.session.commit()
        self.session.refresh(detection)
        return detection

    def list_detections(self, filters: DetectionFilter, pagination: Pagination) -> Tuple[List[UpdateDetection], int]:
        clauses = filters.clauses()
        total = self.session.exec(
            select(func.count()).select_from(UpdateDetection).where(*clauses)
        ).one()
        rows = self.session.exec(
            select(UpdateDetection)
            .where(*clauses)
            .order_by(UpdateDetection.detected_at.desc())
            .offset(pagination.offset)
            .limit(pagination.limit)
        ).all()
        return list(rows), total

    # Rollouts
    def create_rollout(
        self,
        endpoint_id: str,
        product_ref: str,
        from_version: str,
        to_version: str,
        initiated_by: str
    ) -> UpdateRollout:
        product = self._product(product_ref)
        self._version(product.product_id, from_version)
        self._released_version(product.product_id, to_version)
        if self._find_detection(endpoint_id, product.product_id) is None:
            raise InvalidRequest(
                f"No update detection for endpoint {endpoint_id} and product {product.product_id}"
            )

        rollout = UpdateRollout(
            endpoint_id=endpoint_id,
            product_id=product.product_id,
            from_version=from_version,
            to_version=to_version,
            status=RolloutStatus.PENDING,
            progress=0,
            initiated_by=initiated_by,
        )
        self.session.add(rollout)
        self.session.commit()
        self.session.refresh(rollout)
        logger.info(f"Created rollout {rollout.id} of {product.product_id} {to_version} on {endpoint_id}")
        return rollout

    def get_rollout(self, rollout_id) -> UpdateRollout:
        surrogate = as_uuid(rollout_id)
        rollout = self.session.get(UpdateRollout, surrogate) if surrogate else None
        if rollout is None:
            raise NotFound.for_resource("Rollout", rollout_id)
        return rollout

    def list_rollouts(self, filters: RolloutFilter, pagination: Pagination) -> Tuple[List[UpdateRollout], int]:
        clauses = filters.clauses()
        total = self.session.exec(
            select(func.count()).select_from(UpdateRollout).where(*clauses)
        ).one()
        rows = self.session.exec(
            select(UpdateRollout)
            .where(*clauses)
            .order_by(UpdateRollout.initiated_at.desc())
            .offset(pagination.offset)
            .limit(pagination.limit)
        ).all()
        return list(rows), total

    def update_status(
        self,
        rollout_id,
        status: RolloutStatus,
        error_message: Optional[str] = None
    ) -> UpdateRollout:
        rollout = self.get_rollout(rollout_id)
        try:
            rollout.transition_to(status, error_message=error_message)
        except ValueError as e:
            raise InvalidState(str(e))

        self.session.add(rollout)
        self.session.commit()
        self.session.refresh(rollout)
        logger.info(f"Rollout {rollout.id} is now {rollout.status.value}")
        return rollout

    def update_progress(self, rollout_id, progress: int) -> UpdateRollout:
        if progress is None or progress < 0 or progress > 100:
            raise InvalidRequest("progress must be between 0 and 100")

        rollout = self.get_rollout(rollout_id)
        if not rollout.can_report_progress():
            raise InvalidState(f"Cannot report progress of a {rollout.status.value} rollout")

        rollout.progress = progress
        rollout.updated_at = utc_now()
        self.session.add(rollout)
        self.session.commit()
        self.session.refresh(rollout)
        return rollout
