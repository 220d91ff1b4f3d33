"""
Models Module

Data types exchanged between the host layer and BuildPublisher, plus the
small helpers that derive descriptor fields from job configuration.

Data Flow:
    Job configuration + BuildContext → BuildDescriptor → to_payload() → POST /v2/create
    BuildPublisher.publish() → PublishOutcome → host (bool)

Module Dependencies:
    - dataclasses: For immutable records
    - enum: For result, phase and state enumerations
    - logging: For duplicate metadata warnings
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePath
from typing import Dict, Any, Optional, Iterable, List, Tuple, Mapping

logger = logging.getLogger(__name__)


class BuildResult(Enum):
    """Result reported to papyrus. Anything that is not SUCCESS is a FAILURE."""
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"

    @classmethod
    def from_ci(cls, value: Optional[str]) -> "BuildResult":
        """Map a CI result string (SUCCESS, UNSTABLE, ABORTED, None...) to a BuildResult."""
        if value is not None and str(value).strip().upper() == cls.SUCCESS.value:
            return cls.SUCCESS
        return cls.FAILURE


class PublishPhase(Enum):
    """Phase of the two-step publish."""
    CREATE_BUILD = "CreateBuild"
    UPLOAD_ARTIFACT = "UploadArtifact"


class PublishState(Enum):
    """States of a single publish attempt."""
    IDLE = "idle"
    CREATING_BUILD = "creating_build"
    CREATE_FAILED = "create_failed"            # terminal
    BUILD_CREATED = "build_created"
    SKIPPED_UPLOAD = "skipped_upload"          # terminal, CI build failed
    UPLOADING = "uploading"
    UPLOAD_FAILED = "upload_failed"            # terminal
    UPLOADED = "uploaded"                      # terminal


@dataclass(frozen=True)
class CommitRecord:
    """
    One source-control change entry attached to a build.

    Attributes:
        author (str): Full name of the author
        email (str): Author e-mail address
        description (str): Commit message
        commit_hash (str): Commit id
        timestamp_seconds (int): Commit time, seconds since epoch
    """
    author: str
    email: str
    description: str
    commit_hash: str
    timestamp_seconds: int

    def to_payload(self) -> Dict[str, Any]:
        return {
            "author": self.author,
            "email": self.email,
            "description": self.description,
            "hash": self.commit_hash,
            "timestamp": self.timestamp_seconds,
        }


@dataclass(frozen=True)
class MetadataEntry:
    """Statically configured key/value pair attached to every build of a job."""
    key: str
    value: str

    @classmethod
    def parse(cls, item: str) -> "MetadataEntry":
        """
        Parse a ``key=value`` string.

        Raises:
            ValueError: If there is no '=' or the key is empty
        """
        key, sep, value = item.partition('=')
        key = key.strip()
        if not sep or not key:
            raise ValueError(f"Invalid metadata item '{item}'. Expected key=value")
        return cls(key=key, value=value.strip())


@dataclass(frozen=True)
class BuildDescriptor:
    """
    Summary of one CI build submitted in the CreateBuild phase.

    Attributes:
        project (str): Papyrus project name
        version (str): Project version the build belongs to
        build (str): Build number as a string
        result (BuildResult): CI result
        start_timestamp (int): Build start, ms since epoch
        duration_ms (int): Build duration in ms
        file_extension (Optional[str]): Extension of the artifact, None when it has none
        commits (Tuple[CommitRecord, ...]): Change set in source-control order
        metadata (Optional[Mapping[str, str]]): Free-form metadata, omitted from the payload when empty
    """
    project: str
    version: str
    build: str
    result: BuildResult
    start_timestamp: int
    duration_ms: int
    file_extension: Optional[str] = None
    commits: Tuple[CommitRecord, ...] = ()
    metadata: Optional[Mapping[str, str]] = None

    def to_payload(self) -> Dict[str, Any]:
        """
        Build the CreateBuild JSON object.

        Returns:
            Dict[str, Any]: Payload with keys project, version, build, result,
            timestamp, duration, fileExtension, commits and, only when there
            is metadata, metadata
        """
        payload = {
            "project": self.project,
            "version": self.version,
            "build": self.build,
            "result": self.result.value,
            "timestamp": self.start_timestamp,
            "duration": self.duration_ms,
            "fileExtension": self.file_extension,
            "commits": [commit.to_payload() for commit in self.commits],
        }
        if self.metadata:
            payload["metadata"] = dict(self.metadata)
        return payload


@dataclass
class BuildContext:
    """
    What the CI host knows about the build being reported.

    Attributes:
        number (int): Build number
        result (BuildResult): CI result
        start_time_ms (int): Build start, ms since epoch
        duration_ms (int): Build duration in ms
        workspace (Path): Workspace the artifact path is resolved against
        change_set (List[CommitRecord]): Commits in this build, in source-control order
    """
    number: int
    result: BuildResult
    start_time_ms: int
    duration_ms: int
    workspace: Path
    change_set: List[CommitRecord] = field(default_factory=list)


@dataclass(frozen=True)
class PublishOutcome:
    """
    Result of BuildPublisher.publish().

    Use the ``success`` and ``failure`` constructors rather than building
    instances directly.

    Attributes:
        succeeded (bool): Overall result handed back to the host
        uploaded (bool): Whether the artifact was uploaded
        state (PublishState): Terminal state reached
        phase (Optional[PublishPhase]): Failed phase, None on success
        message (Optional[str]): Failure reason
        error_type (Optional[str]): Name of the error class behind a failure
        post_action_exit_code (Optional[int]): Exit status of the post-upload script, if one ran
    """
    succeeded: bool
    uploaded: bool
    state: PublishState
    phase: Optional[PublishPhase] = None
    message: Optional[str] = None
    error_type: Optional[str] = None
    post_action_exit_code: Optional[int] = field(default=None, compare=False)

    @classmethod
    def success(cls, uploaded: bool, post_action_exit_code: Optional[int] = None) -> "PublishOutcome":
        state = PublishState.UPLOADED if uploaded else PublishState.SKIPPED_UPLOAD
        return cls(
            succeeded=True,
            uploaded=uploaded,
            state=state,
            post_action_exit_code=post_action_exit_code,
        )

    @classmethod
    def failure(cls, phase: PublishPhase, message: str, error_type: Optional[str] = None) -> "PublishOutcome":
        if phase is PublishPhase.CREATE_BUILD:
            state = PublishState.CREATE_FAILED
        else:
            state = PublishState.UPLOAD_FAILED
        return cls(
            succeeded=False,
            uploaded=False,
            state=state,
            phase=phase,
            message=message,
            error_type=error_type,
        )


def file_extension(file_name: str) -> Optional[str]:
    """
    Extract the artifact extension: everything after the first dot of the base name.

    Example:
        file_extension("build-1234.jar")    -> "jar"
        file_extension("dist/app.tar.gz")   -> "tar.gz"
        file_extension("build")             -> None
    """
    name = PurePath(file_name).name
    index = name.find('.')
    return name[index + 1:] if index >= 0 else None


def collapse_metadata(entries: Iterable[MetadataEntry]) -> Dict[str, str]:
    """
    Collapse configured metadata entries into a mapping.

    Last write wins. Overwritten keys are logged so a duplicate is never
    dropped silently. Insertion order of first appearance is kept.

    Args:
        entries (Iterable[MetadataEntry]): Entries in configuration order

    Returns:
        Dict[str, str]: Mapping of key to value
    """
    metadata: Dict[str, str] = {}
    for entry in entries:
        if entry.key in metadata and metadata[entry.key] != entry.value:
            logger.warning(
                "Duplicate metadata key '%s': '%s' replaced by '%s'",
                entry.key, metadata[entry.key], entry.value
            )
        metadata[entry.key] = entry.value
    return metadata
