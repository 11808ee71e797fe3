"""Pydantic models for the hawkBit DDI and Management REST payloads.

Field names are snake_case; the camelCase wire names are accepted on input and
emitted on output through aliases. The HAL-style ``_links`` member is exposed
as ``links``. Unknown wire fields are ignored so newer servers do not break
parsing.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class DdiModel(BaseModel):
    """Base model with camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> dict[str, Any]:
        """Serialize to a JSON-ready dict using wire names, omitting unset values."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# -------------------------------------------------------------------------
# Vocabularies
# -------------------------------------------------------------------------


class ExecutionStatus(str, Enum):
    """Workflow phase reported in action feedback."""

    CLOSED = "closed"
    PROCEEDING = "proceeding"
    CANCELED = "canceled"
    SCHEDULED = "scheduled"
    REJECTED = "rejected"
    RESUMED = "resumed"
    DOWNLOADED = "downloaded"
    DOWNLOAD = "download"


class FinishedResult(str, Enum):
    """Terminal outcome reported in action feedback."""

    SUCCESS = "success"
    FAILURE = "failure"
    NONE = "none"


class HandlingType(str, Enum):
    """How the device should treat the download or update step."""

    SKIP = "skip"
    ATTEMPT = "attempt"
    FORCED = "forced"


class MaintenanceWindow(str, Enum):
    """Whether the maintenance window currently allows the update."""

    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


class ConfigDataMode(str, Enum):
    """Update mode for device attributes."""

    MERGE = "merge"
    REPLACE = "replace"
    REMOVE = "remove"


class ConfirmationType(str, Enum):
    """Answer to a confirmation request."""

    CONFIRMED = "confirmed"
    DENIED = "denied"


# -------------------------------------------------------------------------
# Links and polling
# -------------------------------------------------------------------------


class Link(DdiModel):
    """A hypermedia link to a resource currently available to the device."""

    href: str
    name: str | None = None
    title: str | None = None
    type: str | None = None
    templated: bool | None = None


class Polling(DdiModel):
    """Polling advice; ``sleep`` is in HH:MM:SS notation."""

    sleep: str | None = None


class ControllerConfig(DdiModel):
    polling: Polling | None = None


class ControllerBase(DdiModel):
    """Response of the root poll endpoint.

    Attributes:
        config: Server-side polling configuration.
        links: Link name to Link for every action currently pending.
    """

    config: ControllerConfig | None = None
    links: dict[str, Link] = Field(default_factory=dict, alias="_links")

    @property
    def polling_sleep(self) -> str | None:
        """Return the advertised HH:MM:SS polling interval, if any."""
        if self.config is None or self.config.polling is None:
            return None
        return self.config.polling.sleep

    def has_link(self, name: str) -> bool:
        """Return True if a link with the given name is present."""
        return name in self.links

    def href(self, name: str) -> str | None:
        """Return the URL of the named link, or None when absent."""
        link = self.links.get(name)
        return link.href if link is not None else None


# -------------------------------------------------------------------------
# Deployment
# -------------------------------------------------------------------------


class ArtifactHashes(DdiModel):
    sha1: str | None = None
    md5: str | None = None
    sha256: str | None = None


class Artifact(DdiModel):
    """One downloadable file of a software module.

    Attributes:
        filename: File name on the server.
        size: File size in bytes.
        hashes: Content hashes published by the server.
    """

    filename: str
    size: int = 0
    hashes: ArtifactHashes | None = None
    links: dict[str, Link] = Field(default_factory=dict, alias="_links")


class Metadata(DdiModel):
    key: str
    value: str


class Chunk(DdiModel):
    """A named, versioned artifact group of one software module.

    Attributes:
        part: Chunk type, e.g. firmware, bundle, app.
        version: Software module version.
        name: Software module name.
        encrypted: True if the artifacts are encrypted.
        artifacts: Files belonging to the chunk.
        metadata: Metadata visible to the target.
    """

    part: str
    version: str
    name: str
    encrypted: bool | None = None
    artifacts: list[Artifact] = Field(default_factory=list)
    metadata: list[Metadata] = Field(default_factory=list)

    @property
    def total_size(self) -> int:
        """Return the summed size of all artifacts in bytes."""
        return sum(artifact.size for artifact in self.artifacts)


class Deployment(DdiModel):
    download: HandlingType | None = None
    update: HandlingType | None = None
    chunks: list[Chunk] = Field(default_factory=list)
    maintenance_window: MaintenanceWindow | None = None


class ActionHistory(DdiModel):
    status: str | None = None
    messages: list[str] = Field(default_factory=list)


class DeploymentBase(DdiModel):
    """One update action assigned to the device.

    Attributes:
        id: Action identifier.
        deployment: Handling hints and the ordered chunk list.
        action_history: Previous feedback messages, when requested.
    """

    id: str
    deployment: Deployment
    action_history: ActionHistory | None = None
    links: dict[str, Link] = Field(default_factory=dict, alias="_links")

    @property
    def chunks(self) -> list[Chunk]:
        """Return the chunks of the deployment."""
        return self.deployment.chunks

    @property
    def artifact_count(self) -> int:
        """Return the number of artifacts across all chunks."""
        return sum(len(chunk.artifacts) for chunk in self.chunks)

    @property
    def total_size(self) -> int:
        """Return the summed artifact size in bytes across all chunks."""
        return sum(chunk.total_size for chunk in self.chunks)


# -------------------------------------------------------------------------
# Feedback
# -------------------------------------------------------------------------


class Progress(DdiModel):
    cnt: int
    of: int | None = None


class FeedbackResult(DdiModel):
    finished: FinishedResult
    progress: Progress | None = None


class FeedbackStatus(DdiModel):
    execution: ExecutionStatus
    result: FeedbackResult
    code: int | None = None
    details: list[str] = Field(default_factory=list)


class ActionFeedback(DdiModel):
    """Feedback for a deployment or cancel action.

    Attributes:
        status: Execution phase, result and human-readable details.
        timestamp: Epoch milliseconds when the feedback was produced.
    """

    status: FeedbackStatus
    timestamp: int | None = None

    @classmethod
    def create(
        cls,
        execution: ExecutionStatus,
        finished: FinishedResult,
        details: list[str] | None = None,
        timestamp: int | None = None,
    ) -> ActionFeedback:
        """Build a feedback object from its parts.

        Args:
            execution: Workflow phase.
            finished: Terminal outcome (``none`` while still in progress).
            details: Optional detail messages.
            timestamp: Optional epoch milliseconds.

        Returns:
            The assembled feedback.
        """
        return cls(
            status=FeedbackStatus(
                execution=execution,
                result=FeedbackResult(finished=finished),
                details=list(details or []),
            ),
            timestamp=timestamp,
        )


# -------------------------------------------------------------------------
# Config data
# -------------------------------------------------------------------------


class ConfigData(DdiModel):
    data: dict[str, str]
    mode: ConfigDataMode | None = None


# -------------------------------------------------------------------------
# Cancel
# -------------------------------------------------------------------------


class CancelActionToStop(DdiModel):
    stop_id: str


class CancelAction(DdiModel):
    """Cancel request naming the action to stop."""

    id: str | None = None
    cancel_action: CancelActionToStop


# -------------------------------------------------------------------------
# Confirmation
# -------------------------------------------------------------------------


class AutoConfirmationState(DdiModel):
    active: bool
    initiator: str | None = None
    remark: str | None = None
    activated_at: int | None = None
    links: dict[str, Link] = Field(default_factory=dict, alias="_links")


class ConfirmationBase(DdiModel):
    """Confirmation state of the device, with links to pending requests."""

    auto_confirm: AutoConfirmationState
    links: dict[str, Link] = Field(default_factory=dict, alias="_links")


class ConfirmationAction(DdiModel):
    """An action waiting for the device to confirm it."""

    id: str
    confirmation: Deployment
    action_history: ActionHistory | None = None
    links: dict[str, Link] = Field(default_factory=dict, alias="_links")


class ConfirmationFeedback(DdiModel):
    confirmation: ConfirmationType
    code: int | None = None
    details: list[str] = Field(default_factory=list)


class ActivateAutoConfirmation(DdiModel):
    initiator: str | None = None
    remark: str | None = None


# -------------------------------------------------------------------------
# Errors
# -------------------------------------------------------------------------


class ExceptionInfo(DdiModel):
    """Error body returned by hawkBit on failed requests."""

    exception_class: str | None = None
    error_code: str | None = None
    message: str | None = None
    info: dict[str, Any] | None = None


# -------------------------------------------------------------------------
# Management API
# -------------------------------------------------------------------------


class Target(DdiModel):
    """A device record as returned by the Management API."""

    controller_id: str
    name: str
    description: str | None = None
    security_token: str
    address: str | None = None
    update_status: str | None = None
    links: dict[str, Link] = Field(default_factory=dict, alias="_links")


class TargetRequestBody(DdiModel):
    controller_id: str
    name: str
    description: str | None = None
    target_type: int | None = None
