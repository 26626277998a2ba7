"""
Version model with lifecycle state machine and attached packages
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import Column, DateTime, JSON, UniqueConstraint
from datetime import datetime
from typing import Any, Dict, List, Optional
from enum import Enum
import uuid

from update_manager.core.timeutil import utc_now


class VersionState(str, Enum):
    """Lifecycle state of a product version"""
    DRAFT = "draft"                     # Editable, packages may be attached
    PENDING_REVIEW = "pending_review"   # Submitted, waiting for approval
    APPROVED = "approved"               # Approved, ready to ship
    RELEASED = "released"               # Visible to deployments as an update
    DEPRECATED = "deprecated"           # Superseded, no longer offered
    EOL = "eol"                         # End of life


class ReleaseType(str, Enum):
    """Kind of release"""
    MAJOR = "major"
    FEATURE = "feature"
    MAINTENANCE = "maintenance"
    SECURITY = "security"


class PackageType(str, Enum):
    """Kind of package artifact"""
    FULL_INSTALLER = "full_installer"
    UPDATE = "update"
    DELTA = "delta"
    ROLLBACK = "rollback"


# Allowed moves of the lifecycle graph
VERSION_TRANSITIONS: Dict[VersionState, frozenset] = {
    VersionState.DRAFT: frozenset({VersionState.PENDING_REVIEW}),
    VersionState.PENDING_REVIEW: frozenset({VersionState.APPROVED}),
    VersionState.APPROVED: frozenset({VersionState.RELEASED}),
    VersionState.RELEASED: frozenset({VersionState.DEPRECATED, VersionState.EOL}),
    VersionState.DEPRECATED: frozenset({VersionState.EOL}),
    VersionState.EOL: frozenset(),
}


# Release notes structure (stored as JSON on the version)
class VersionInfo(SQLModel):
    version_number: Optional[str] = None
    release_date: Optional[datetime] = None
    release_type: Optional[ReleaseType] = None


class BugFix(SQLModel):
    id: str
    description: str
    issue_number: Optional[str] = None


class BreakingChange(SQLModel):
    description: str
    migration_steps: List[str] = []
    configuration_changes: List[str] = []


class CompatibilityNotes(SQLModel):
    server_version_requirements: Optional[str] = None
    client_version_requirements: Optional[str] = None
    os_requirements: List[str] = []


class KnownIssue(SQLModel):
    id: str
    description: str
    workaround: Optional[str] = None
    planned_fix: Optional[str] = None


class ReleaseNotes(SQLModel):
    """Structured release notes"""
    version_info: Optional[VersionInfo] = None
    whats_new: List[str] = []
    bug_fixes: List[BugFix] = []
    breaking_changes: List[BreakingChange] = []
    compatibility: Optional[CompatibilityNotes] = None
    upgrade_instructions: Optional[str] = None
    known_issues: List[KnownIssue] = []


class PackageInfo(SQLModel):
    """Metadata of an uploaded package, immutable once attached"""
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    package_type: PackageType
    file_name: str
    file_size: int
    checksum_sha256: str
    os: Optional[str] = None
    architecture: Optional[str] = None
    digital_signature: Optional[str] = None
    download_url: Optional[str] = None
    uploaded_at: datetime = Field(default_factory=utc_now)
    uploaded_by: Optional[str] = None


class Version(SQLModel, table=True):
    """A version of a product moving through the release lifecycle"""

    __tablename__ = "versions"
    __table_args__ = (
        UniqueConstraint("product_id", "version_number", name="uq_versions_product_version"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    product_id: str = Field(
        max_length=100,
        index=True,
        description="Business identifier of the owning product"
    )
    version_number: str = Field(max_length=50, description="Dotted numeric version, e.g. 1.2.3")
    release_type: ReleaseType = Field(index=True)
    state: VersionState = Field(
        default=VersionState.DRAFT,
        index=True,
        description="Current lifecycle state"
    )
    release_date: datetime = Field(index=True, sa_type=DateTime)
    eol_date: Optional[datetime] = Field(default=None, nullable=True, sa_type=DateTime)

    min_server_version: Optional[str] = Field(default=None, max_length=50)
    max_server_version: Optional[str] = Field(default=None, max_length=50)
    recommended_server_version: Optional[str] = Field(default=None, max_length=50)

    release_notes: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    packages: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))

    created_by: Optional[str] = Field(default=None, max_length=255)
    approved_by: Optional[str] = Field(default=None, max_length=255)
    approved_at: Optional[datetime] = Field(default=None, nullable=True, sa_type=DateTime)

    # Optimistic concurrency control
    revision: int = Field(
        default=1,
        description="Bumped on every write, guards package attachment"
    )

    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime)

    # State machine methods
    def can_transition_to(self, target: VersionState) -> bool:
        """Check if the lifecycle graph allows moving to target"""
        return target in VERSION_TRANSITIONS[VersionState(self.state)]

    def can_modify(self) -> bool:
        """Drafts are the only editable versions"""
        return self.state == VersionState.DRAFT

    def can_attach_package(self) -> bool:
        return self.state == VersionState.DRAFT

    def is_update_candidate(self, now: datetime) -> bool:
        """Released and not past its end-of-life date"""
        if self.state != VersionState.RELEASED:
            return False
        return self.eol_date is None or self.eol_date > now

    def package_list(self) -> List[PackageInfo]:
        return [PackageInfo.model_validate(p) for p in (self.packages or [])]

    def find_package(self, package_id: uuid.UUID) -> Optional[PackageInfo]:
        for package in self.package_list():
            if package.id == package_id:
                return package
        return None
