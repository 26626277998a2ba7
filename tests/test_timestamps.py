"""
Tests for timestamp storage
"""

from datetime import datetime, timedelta, timezone

from sqlalchemy import DateTime
from sqlmodel import Session, SQLModel

import update_manager.models  # noqa: F401
from update_manager.core.timeutil import utc_now
from update_manager.models.product import Product, ProductType
from update_manager.models.version import ReleaseType, Version
from update_manager.services.version_store import VersionStore


def datetime_columns():
    for table in SQLModel.metadata.sorted_tables:
        for column in table.columns:
            if isinstance(column.type, DateTime):
                yield column


class TestTimestampColumns:
    """Test that timestamps are stored as naive UTC"""

    def test_every_table_has_naive_datetime_columns(self):
        """Timestamp columns are plain DateTime without time zone"""
        columns = list(datetime_columns())

        assert {column.name for column in columns} >= {"created_at", "updated_at", "release_date"}
        for column in columns:
            assert type(column.type) is DateTime, f"{column.table.name}.{column.name}"
            assert column.type.timezone is False

    def test_product_timestamps_round_trip(self, db: Session):
        """A defaulted timestamp survives a write and a fresh read"""
        product = Product(product_id="PROD-TS", name="Timestamped", type=ProductType.SERVER)
        created_at = product.created_at
        db.add(product)
        db.commit()
        db.expire_all()

        stored = db.get(Product, product.id)

        assert stored.created_at == created_at
        assert stored.created_at.tzinfo is None

    def test_version_release_date_round_trip(self, db: Session, server_product):
        """An explicit release date is stored and read back unchanged"""
        release_date = utc_now().replace(microsecond=0) - timedelta(days=3)
        version = VersionStore(db).insert(Version(
            product_id=server_product.product_id,
            version_number="4.2.0",
            release_type=ReleaseType.FEATURE,
            release_date=release_date,
        ))
        db.expire_all()

        stored = VersionStore(db).get(version.id)

        assert stored.release_date == release_date
        assert stored.release_date.tzinfo is None

    def test_aware_input_is_stored_as_utc(self, client, server_product):
        """An offset timestamp in a request is normalised to UTC"""
        response = client.post(
            f"/api/v1/products/{server_product.product_id}/versions",
            json={
                "version_number": "5.0.0",
                "release_type": "feature",
                "release_date": "2026-03-01T12:00:00+02:00",
            },
        )

        assert response.status_code == 201
        stored = datetime.fromisoformat(response.json()["data"]["release_date"])
        assert stored.replace(tzinfo=timezone.utc) == datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)
