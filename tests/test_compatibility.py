"""
Tests for compatibility matrices and upgrade paths
"""

import pytest

from update_manager.core.errors import Conflict, NotFound
from update_manager.models.compatibility import ValidationStatus
from update_manager.models.upgrade_path import PathType
from update_manager.models.version import VersionState
from update_manager.services.compatibility import CompatibilityService
from update_manager.services.upgrade_paths import UpgradePathService


class TestCompatibility:
    """Test compatibility matrix upserts"""

    def test_validate_upserts(self, db, client_product, make_version):
        make_version(client_product.product_id, "3.1.0", state=VersionState.DRAFT)
        service = CompatibilityService(db)

        first = service.validate("PROD-CLI", "3.1.0", "qa", min_server_version="2.0.0")
        second = service.validate(
            "PROD-CLI", "3.1.0", "qa-lead", min_server_version="2.1.0", incompatible_versions=["1.9.0"]
        )

        assert second.id == first.id
        assert second.min_server_version == "2.1.0"
        assert second.incompatible_versions == ["1.9.0"]
        assert second.validation_status == ValidationStatus.PASSED
        assert second.validated_by == "qa-lead"

    def test_unknown_version(self, db, client_product):
        with pytest.raises(NotFound):
            CompatibilityService(db).validate("PROD-CLI", "9.9.9", "qa")


class TestUpgradePaths:
    """Test upgrade path bookkeeping"""

    def test_create_and_block(self, db, server_product, make_version):
        for number in ("1.0.0", "1.5.0", "2.0.0"):
            make_version(server_product.product_id, number)
        service = UpgradePathService(db)

        path = service.create(
            "PROD-SRV", "1.0.0", "2.0.0", PathType.MULTI_STEP, intermediate_versions=["1.5.0"]
        )
        assert path.intermediate_versions == ["1.5.0"]
        assert path.is_blocked is False

        blocked = service.block("PROD-SRV", "1.0.0", "2.0.0", "data migration bug")
        assert blocked.is_blocked is True
        assert blocked.path_type == PathType.BLOCKED

    def test_duplicate_path(self, db, server_product, make_version):
        make_version(server_product.product_id, "1.0.0")
        make_version(server_product.product_id, "2.0.0")
        service = UpgradePathService(db)
        service.create("PROD-SRV", "1.0.0", "2.0.0")

        with pytest.raises(Conflict):
            service.create("PROD-SRV", "1.0.0", "2.0.0")

    def test_missing_intermediate(self, db, server_product, make_version):
        make_version(server_product.product_id, "1.0.0")
        make_version(server_product.product_id, "2.0.0")

        with pytest.raises(NotFound):
            UpgradePathService(db).create("PROD-SRV", "1.0.0", "2.0.0", intermediate_versions=["1.5.0"])
