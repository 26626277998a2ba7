"""
Tests for the version lifecycle engine and package attachment
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
import io
import threading

import pytest
from sqlmodel import Session

from update_manager.core.concurrency import Deadline
from update_manager.core.errors import Conflict, InvalidState, NotFound, OperationCancelled
from update_manager.core.events import EventBus, VersionReleased
from update_manager.core.timeutil import utc_now
from update_manager.models.product import Product
from update_manager.models.version import PackageType, ReleaseType, VersionState
from update_manager.services.version_lifecycle import VersionLifecycle


@pytest.fixture
def events():
    """Event bus recording every VersionReleased"""
    bus = EventBus()
    received = []
    bus.subscribe(VersionReleased.__name__, received.append)
    bus.received = received
    return bus


@pytest.fixture
def lifecycle(db: Session, events: EventBus, storage) -> VersionLifecycle:
    return VersionLifecycle(db, event_bus=events, storage=storage)


def create_draft(lifecycle: VersionLifecycle, product: Product, number: str = "2.0.0"):
    return lifecycle.create_version(
        product.product_id,
        version_number=number,
        release_type=ReleaseType.MAJOR,
        release_date=utc_now(),
        created_by="alice",
    )


class TestReleaseWorkflow:
    """Test the full draft to released workflow"""

    def test_release_workflow(self, lifecycle, events, server_product):
        """Test draft -> pending_review -> approved -> released with a package"""
        version = create_draft(lifecycle, server_product)
        assert version.state == VersionState.DRAFT

        package = lifecycle.upload_package(
            version.id,
            file_name="server-2.0.0.zip",
            source=io.BytesIO(b"payload"),
            package_type=PackageType.FULL_INSTALLER,
            uploaded_by="alice",
        )
        assert package.file_size == 7
        assert len(lifecycle.list_packages(version.id)) == 1

        lifecycle.submit_for_review(version.id, "alice")
        approved = lifecycle.approve(version.id, "bob")
        assert approved.state == VersionState.APPROVED
        assert approved.approved_by == "bob"
        assert approved.approved_at is not None

        released = lifecycle.release(version.id, "bob")
        assert released.state == VersionState.RELEASED
        assert len(events.received) == 1
        assert events.received[0].version_id == version.id

        # Packages are frozen once the version leaves draft
        with pytest.raises(InvalidState):
            lifecycle.upload_package(
                version.id,
                file_name="late.zip",
                source=io.BytesIO(b"late"),
                package_type=PackageType.UPDATE,
                uploaded_by="alice",
            )
        assert len(lifecycle.list_packages(version.id)) == 1

    def test_cannot_skip_review(self, lifecycle, events, server_product):
        """Test draft cannot be released directly"""
        version = create_draft(lifecycle, server_product)

        with pytest.raises(InvalidState):
            lifecycle.release(version.id, "bob")

        assert lifecycle.get_version(version.id).state == VersionState.DRAFT
        assert events.received == []

    def test_eol_is_terminal(self, lifecycle, server_product, make_version):
        """Test nothing leaves EOL"""
        version = make_version(server_product.product_id, "1.0.0", state=VersionState.RELEASED)
        lifecycle.end_of_life(version.id, "admin")

        with pytest.raises(InvalidState):
            lifecycle.deprecate(version.id, "admin")

    def test_duplicate_version_number(self, lifecycle, server_product):
        create_draft(lifecycle, server_product, "3.0.0")
        with pytest.raises(Conflict):
            create_draft(lifecycle, server_product, "3.0.0")

    def test_unknown_product(self, lifecycle):
        with pytest.raises(NotFound):
            lifecycle.create_version(
                "PROD-MISSING", "1.0.0", ReleaseType.FEATURE, utc_now(), "alice"
            )

    def test_expired_deadline_cancels(self, lifecycle, server_product):
        """Test a transition is not attempted once the deadline passed"""
        version = create_draft(lifecycle, server_product)

        with pytest.raises(OperationCancelled):
            lifecycle.submit_for_review(version.id, "alice", deadline=Deadline(0))

        assert lifecycle.get_version(version.id).state == VersionState.DRAFT


class TestDraftUpdates:
    """Test edits of draft versions"""

    def test_update_draft(self, lifecycle, server_product):
        version = create_draft(lifecycle, server_product)
        revision = version.revision
        eol = utc_now() + timedelta(days=365)

        updated = lifecycle.update_draft(version.id, {"eol_date": eol, "version_number": "9.9.9"})

        assert updated.eol_date == eol
        # Identity fields are not editable
        assert updated.version_number == "2.0.0"
        assert updated.revision == revision + 1

    def test_update_non_draft(self, lifecycle, server_product, make_version):
        version = make_version(server_product.product_id, "1.0.0", state=VersionState.APPROVED)

        with pytest.raises(InvalidState):
            lifecycle.update_draft(version.id, {"release_type": ReleaseType.SECURITY})


class TestCompareAndSwap:
    """Test transitions are compare-and-swap"""

    def test_stale_expected_state_loses(self, db, lifecycle, server_product, make_version):
        """Test a writer holding a stale state does not overwrite a newer one"""
        version = make_version(server_product.product_id, "1.0.0", state=VersionState.PENDING_REVIEW)

        lifecycle.approve(version.id, "bob")
        swapped = lifecycle.store.compare_and_set_state(
            version.id, VersionState.PENDING_REVIEW, VersionState.APPROVED
        )

        assert swapped is False
        assert lifecycle.get_version(version.id).approved_by == "bob"

    def test_concurrent_approvals(self, test_engine, server_product, make_version):
        """Test exactly one of several concurrent approvals wins"""
        version = make_version(server_product.product_id, "1.0.0", state=VersionState.PENDING_REVIEW)
        barrier = threading.Barrier(4)

        def approve(reviewer: str) -> str:
            with Session(test_engine) as session:
                barrier.wait()
                try:
                    VersionLifecycle(session, event_bus=EventBus()).approve(version.id, reviewer)
                    return "won"
                except InvalidState:
                    return "lost"

        with ThreadPoolExecutor(max_workers=4) as pool:
            outcomes = list(pool.map(approve, ["r1", "r2", "r3", "r4"]))

        assert outcomes.count("won") == 1
        assert outcomes.count("lost") == 3

    def test_package_attach_after_submit_is_refused(self, db, lifecycle, server_product):
        """Test a package cannot be appended once submission won the race"""
        version = create_draft(lifecycle, server_product)
        stale_revision = lifecycle.get_version(version.id).revision

        lifecycle.submit_for_review(version.id, "alice")

        assert lifecycle.store.compare_and_set_draft(version.id, stale_revision, packages=[]) is False
        with pytest.raises(InvalidState):
            lifecycle.upload_package(
                version.id,
                file_name="setup.zip",
                source=io.BytesIO(b"x"),
                package_type=PackageType.FULL_INSTALLER,
                uploaded_by="alice",
            )
