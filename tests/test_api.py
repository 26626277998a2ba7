"""
Integration tests for the REST API
"""

from datetime import timedelta
import hashlib

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from update_manager.core.timeutil import utc_now

API = "/api/v1"


def create_product(client: TestClient, product_id: str = "PROD-SRV", **headers):
    response = client.post(
        f"{API}/products",
        json={"product_id": product_id, "name": "Core Server", "type": "server"},
        headers=headers,
    )
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()["data"]


def create_version(client: TestClient, product_id: str = "PROD-SRV", number: str = "1.0.0", **extra):
    body = {
        "version_number": number,
        "release_type": "feature",
        "release_date": utc_now().isoformat(),
    }
    body.update(extra)
    response = client.post(f"{API}/products/{product_id}/versions", json=body)
    assert response.status_code == status.HTTP_201_CREATED, response.text
    return response.json()["data"]


def release(client: TestClient, version_id: str):
    for action in ("submit", "approve", "release"):
        response = client.post(f"{API}/versions/{version_id}/{action}", json={})
        assert response.status_code == status.HTTP_200_OK, response.text
    return response.json()["data"]


class TestEnvelope:
    """Test the success and error envelopes"""

    def test_success_envelope(self, client):
        data = create_product(client)

        response = client.get(f"{API}/products/{data['product_id']}")
        body = response.json()

        assert body["success"] is True
        assert body["data"]["name"] == "Core Server"

    def test_not_found_envelope(self, client):
        response = client.get(f"{API}/products/PROD-NOPE")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json() == {
            "success": False,
            "error": {"code": "NOT_FOUND", "message": "Product not found: PROD-NOPE"},
        }

    def test_unknown_route(self, client):
        response = client.get(f"{API}/nothing-here")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_method_not_allowed(self, client):
        response = client.delete(f"{API}/versions")

        assert response.status_code == status.HTTP_405_METHOD_NOT_ALLOWED
        assert response.json()["error"]["code"] == "METHOD_NOT_ALLOWED"

    def test_validation_error_is_invalid_request(self, client):
        """Test a missing field is reported as 400, not 422"""
        response = client.post(f"{API}/products", json={"product_id": "PROD-X"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"]["code"] == "INVALID_REQUEST"

    def test_non_numeric_version_number(self, client):
        create_product(client)
        response = client.post(
            f"{API}/products/PROD-SRV/versions",
            json={"version_number": "1.0-beta", "release_type": "feature", "release_date": utc_now().isoformat()},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"]["code"] == "INVALID_REQUEST"

    def test_duplicate_is_conflict(self, client):
        create_product(client)
        response = client.post(
            f"{API}/products", json={"product_id": "PROD-SRV", "name": "Again", "type": "server"}
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error"]["code"] == "CONFLICT"


class TestAudit:
    """Test audit entries written by mutating endpoints"""

    def test_anonymous_actor(self, client):
        create_product(client)

        logs = client.get(f"{API}/audit-logs", params={"resource_type": "product"}).json()["data"]

        assert logs[0]["user_id"] == "anonymous"
        assert logs[0]["user_email"] == "anonymous"
        assert logs[0]["action"] == "create"

    def test_actor_headers(self, client):
        create_product(client, **{"X-User-ID": "u-42", "X-User-Email": "ops@acme.test"})

        logs = client.get(f"{API}/audit-logs", params={"user_id": "u-42"}).json()["data"]

        assert len(logs) == 1
        assert logs[0]["user_email"] == "ops@acme.test"


class TestPagination:
    """Test clamping of page and limit"""

    def test_out_of_range_values_are_clamped(self, client):
        for index in range(3):
            create_product(client, f"PROD-{index}")

        body = client.get(f"{API}/products", params={"page": 0, "limit": 500}).json()

        assert body["meta"] == {"page": 1, "limit": 10, "total": 3, "total_pages": 1}

    def test_page_slicing(self, client):
        for index in range(3):
            create_product(client, f"PROD-{index}")

        body = client.get(f"{API}/products", params={"page": 2, "limit": 2}).json()

        assert len(body["data"]) == 1
        assert body["meta"]["total_pages"] == 2

    def test_fleet_default_limit(self, client):
        body = client.get(f"{API}/updates/pending").json()

        assert body["meta"]["limit"] == 20
        assert body["data"] == []


class TestVersionsApi:
    """Test the version workflow over HTTP"""

    def test_upload_and_download_package(self, client):
        create_product(client)
        version = create_version(client)
        payload = b"installer bytes"

        response = client.post(
            f"{API}/versions/{version['id']}/packages",
            files={"file": ("setup-1.0.0.zip", payload, "application/zip")},
            data={"package_type": "full_installer", "os": "linux", "architecture": "x86_64"},
        )
        assert response.status_code == status.HTTP_201_CREATED, response.text
        package = response.json()["data"]
        assert package["checksum_sha256"] == hashlib.sha256(payload).hexdigest()
        assert package["download_url"].endswith(f"/packages/{package['id']}/download")

        download = client.get(f"{API}/versions/{version['id']}/packages/{package['id']}/download")

        assert download.status_code == status.HTTP_200_OK
        assert download.content == payload
        assert download.headers["content-length"] == str(len(payload))
        assert download.headers["x-checksum-sha256"] == package["checksum_sha256"]
        assert "attachment" in download.headers["content-disposition"]
        assert "setup-1.0.0.zip" in download.headers["content-disposition"]

    def test_invalid_package_type(self, client):
        create_product(client)
        version = create_version(client)

        response = client.post(
            f"{API}/versions/{version['id']}/packages",
            files={"file": ("setup.zip", b"x", "application/zip")},
            data={"package_type": "installer"},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_upload_after_release(self, client):
        create_product(client)
        version = create_version(client)
        released = release(client, version["id"])
        assert released["state"] == "released"

        response = client.post(
            f"{API}/versions/{version['id']}/packages",
            files={"file": ("late.zip", b"x", "application/zip")},
            data={"package_type": "update"},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"]["code"] == "INVALID_STATE"

    def test_skip_transition(self, client):
        create_product(client)
        version = create_version(client)

        response = client.post(f"{API}/versions/{version['id']}/release", json={})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"]["code"] == "INVALID_STATE"

    def test_expired_request_deadline(self, client):
        create_product(client)
        version = create_version(client)

        response = client.post(
            f"{API}/versions/{version['id']}/submit", json={}, headers={"X-Request-Timeout": "0"}
        )

        assert response.status_code == status.HTTP_408_REQUEST_TIMEOUT
        assert response.json()["error"]["code"] == "CANCELLED"


class TestPendingUpdatesApi:
    """Test the pending updates endpoints"""

    @pytest.fixture
    def deployment(self, client):
        create_product(client)
        customer = client.post(
            f"{API}/customers", json={"name": "Acme", "email": "ops@acme.test", "customer_id": "CUST-ACME"}
        ).json()["data"]
        tenant = client.post(
            f"{API}/customers/{customer['customer_id']}/tenants", json={"name": "Europe", "tenant_id": "TENANT-EU"}
        ).json()["data"]
        response = client.post(
            f"{API}/customers/CUST-ACME/tenants/{tenant['tenant_id']}/deployments",
            json={"product_id": "PROD-SRV", "deployment_type": "production", "installed_version": "1.0.0"},
        )
        assert response.status_code == status.HTTP_201_CREATED, response.text
        return response.json()["data"]

    def test_release_shows_up_in_pending_updates(self, client, deployment):
        url = f"{API}/customers/CUST-ACME/tenants/TENANT-EU/deployments/{deployment['deployment_id']}/updates"
        assert client.get(url).json()["data"]["update_count"] == 0

        version = create_version(client, number="1.1.0")
        release(client, version["id"])

        data = client.get(url).json()["data"]
        assert data["update_count"] == 1
        assert data["latest_version"] == "1.1.0"
        assert data["version_gap_type"] == "minor"
        assert data["priority"] == "normal"

    def test_tenant_summary_route(self, client, deployment):
        """Test pending-updates is not mistaken for a deployment id"""
        response = client.get(f"{API}/customers/CUST-ACME/tenants/TENANT-EU/deployments/pending-updates")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["total_deployments"] == 1

    def test_fleet_lists_outdated_deployment(self, client, deployment):
        version = create_version(client, number="2.0.0", release_type="major")
        release(client, version["id"])

        body = client.get(f"{API}/updates/pending").json()

        assert body["meta"]["total"] == 1
        assert body["data"][0]["priority"] == "high"


class TestLicensesApi:
    """Test seat allocation over HTTP"""

    @pytest.fixture
    def license_url(self, client):
        create_product(client)
        client.post(f"{API}/customers", json={"name": "Acme", "email": "ops@acme.test", "customer_id": "CUST-ACME"})
        client.post(f"{API}/customers/CUST-ACME/tenants", json={"name": "Europe", "tenant_id": "TENANT-EU"})
        client.post(
            f"{API}/customers/CUST-ACME/subscriptions",
            json={"name": "Enterprise", "subscription_id": "SUB-1", "start_date": utc_now().isoformat()},
        )
        response = client.post(
            f"{API}/customers/CUST-ACME/subscriptions/SUB-1/licenses",
            json={
                "license_id": "LIC-1",
                "product_id": "PROD-SRV",
                "license_type": "time_based",
                "number_of_seats": 10,
                "start_date": utc_now().isoformat(),
                "end_date": (utc_now() + timedelta(days=365)).isoformat(),
            },
        )
        assert response.status_code == status.HTTP_201_CREATED, response.text
        return f"{API}/customers/CUST-ACME/subscriptions/SUB-1/licenses/LIC-1"

    def test_allocate_and_release(self, client, license_url):
        response = client.post(f"{license_url}/allocate", json={"tenant_id": "TENANT-EU", "seats_allocated": 6})
        assert response.status_code == status.HTTP_201_CREATED
        allocation = response.json()["data"]

        over = client.post(f"{license_url}/allocate", json={"tenant_id": "TENANT-EU", "seats_allocated": 5})
        assert over.status_code == status.HTTP_400_BAD_REQUEST
        assert over.json()["error"]["code"] == "INSUFFICIENT_SEATS"

        released = client.post(f"{license_url}/allocations/{allocation['allocation_id']}/release", json={})
        assert released.status_code == status.HTTP_200_OK

        utilization = client.get(f"{license_url}/utilization").json()["data"]
        assert utilization["available_seats"] == 10

    def test_revoke_with_allocations(self, client, license_url):
        client.post(f"{license_url}/allocate", json={"tenant_id": "TENANT-EU", "seats_allocated": 1})

        response = client.delete(license_url)

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error"]["code"] == "HAS_ALLOCATIONS"

    def test_subscription_delete_guard(self, client, license_url):
        response = client.delete(f"{API}/customers/CUST-ACME/subscriptions/SUB-1")

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error"]["code"] == "HAS_DEPENDENTS"

    @pytest.mark.parametrize("field", ["number_of_seats", "start_date"])
    def test_null_license_field_rejected(self, client, license_url, field):
        """An explicit null on a required license field is a bad request"""
        response = client.put(license_url, json={field: None})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"]["code"] == "INVALID_REQUEST"
        assert client.get(license_url).json()["data"]["number_of_seats"] == 10

    def test_null_end_date_still_allowed_on_perpetual_license(self, client, license_url):
        create = client.post(
            f"{API}/customers/CUST-ACME/subscriptions/SUB-1/licenses",
            json={
                "license_id": "LIC-PERP",
                "product_id": "PROD-SRV",
                "license_type": "perpetual",
                "number_of_seats": 2,
                "start_date": utc_now().isoformat(),
            },
        )
        assert create.status_code == status.HTTP_201_CREATED, create.text

        response = client.put(
            f"{API}/customers/CUST-ACME/subscriptions/SUB-1/licenses/LIC-PERP", json={"end_date": None}
        )

        assert response.status_code == status.HTTP_200_OK, response.text


class TestExplicitNulls:
    """Test that nulls on required columns are rejected before reaching the store"""

    @pytest.mark.parametrize("field", ["release_type", "release_date"])
    def test_version_update(self, client, field):
        create_product(client)
        version = create_version(client)

        response = client.put(f"{API}/versions/{version['id']}", json={field: None})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"]["code"] == "INVALID_REQUEST"

    @pytest.mark.parametrize("field", ["deployment_type", "installed_version", "status"])
    def test_deployment_update(self, client, field):
        create_product(client)
        client.post(f"{API}/customers", json={"name": "Acme", "email": "ops@acme.test", "customer_id": "CUST-ACME"})
        client.post(f"{API}/customers/CUST-ACME/tenants", json={"name": "Europe", "tenant_id": "TENANT-EU"})
        created = client.post(
            f"{API}/customers/CUST-ACME/tenants/TENANT-EU/deployments",
            json={"deployment_id": "DEP-1", "product_id": "PROD-SRV", "deployment_type": "production", "installed_version": "1.0.0"},
        )
        assert created.status_code == status.HTTP_201_CREATED, created.text

        response = client.put(f"{API}/customers/CUST-ACME/tenants/TENANT-EU/deployments/DEP-1", json={field: None})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"]["code"] == "INVALID_REQUEST"

    def test_product_update(self, client):
        create_product(client)

        response = client.put(f"{API}/products/PROD-SRV", json={"name": None})

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_omitted_fields_are_left_alone(self, client):
        create_product(client)
        version = create_version(client)

        response = client.put(f"{API}/versions/{version['id']}", json={"min_server_version": "1.0.0"})

        assert response.status_code == status.HTTP_200_OK, response.text
        assert response.json()["data"]["release_type"] == "feature"


class TestRolloutsApi:
    """Test rollout tracking"""

    def test_progress_bounds(self, client):
        create_product(client)
        create_version(client, number="1.0.0")
        release(client, create_version(client, number="1.1.0")["id"])
        detection = client.post(
            f"{API}/update-detections",
            json={"endpoint_id": "host-1", "product_id": "PROD-SRV", "current_version": "1.0.0", "available_version": "1.1.0"},
        )
        assert detection.status_code == status.HTTP_201_CREATED, detection.text
        rollout = client.post(
            f"{API}/update-rollouts",
            json={"endpoint_id": "host-1", "product_id": "PROD-SRV", "from_version": "1.0.0", "to_version": "1.1.0"},
        ).json()["data"]

        too_high = client.put(f"{API}/update-rollouts/{rollout['id']}/progress", json={"progress": 101})
        negative = client.put(f"{API}/update-rollouts/{rollout['id']}/progress", json={"progress": -1})
        valid = client.put(f"{API}/update-rollouts/{rollout['id']}/progress", json={"progress": 40})

        assert too_high.status_code == status.HTTP_400_BAD_REQUEST
        assert negative.status_code == status.HTTP_400_BAD_REQUEST
        assert valid.json()["data"]["progress"] == 40

    def test_rollout_needs_detection(self, client):
        create_product(client)
        create_version(client, number="1.0.0")
        release(client, create_version(client, number="1.1.0")["id"])

        response = client.post(
            f"{API}/update-rollouts",
            json={"endpoint_id": "host-9", "product_id": "PROD-SRV", "from_version": "1.0.0", "to_version": "1.1.0"},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
