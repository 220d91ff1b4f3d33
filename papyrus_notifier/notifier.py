"""
Upload Build Notifier Module

Per-job entry point called by the CI host once a build has finished. It
turns the job configuration and the BuildContext into a BuildDescriptor,
hands it to BuildPublisher and reduces the outcome to the boolean the host
expects from a build step.

Data Flow:
    Config + BuildContext → build_descriptor() → BuildPublisher.publish() → bool

Invoked by: cli
Invokes: build_publisher
"""

import logging
from types import MappingProxyType
from typing import Dict, List, Optional

from .build_publisher import BuildPublisher, normalize_base_url
from .config_loader import Config
from .logging_config import set_build_id, clear_build_id
from .models import BuildContext, BuildDescriptor, MetadataEntry, PublishOutcome, collapse_metadata, file_extension
from .post_action import PostUploadAction

logger = logging.getLogger(__name__)


class UploadBuildNotifier:
    """
    Reports a finished build to papyrus and uploads its artifact.

    Attributes:
        url (str): Papyrus base URL, trimmed and without trailing slashes
        access_token (str): Pre-encoded papyrus token
        project (str): Papyrus project
        version (str): Project version
        file_name (str): Artifact path relative to the workspace
        post_script (Optional[str]): Shell command run after a successful upload
        metadata (List[MetadataEntry]): Metadata entries in configuration order
        publisher (BuildPublisher): Client performing the two-phase publish
    """

    def __init__(
        self,
        url: str,
        access_token: str,
        project: str,
        version: str,
        file_name: str,
        post_script: Optional[str] = None,
        metadata: Optional[List[MetadataEntry]] = None,
        timeout: Optional[float] = None,
        publisher: Optional[BuildPublisher] = None
    ):
        self.url = normalize_base_url(url)
        self.access_token = access_token
        self.project = project
        self.version = version
        self.file_name = file_name
        self.post_script = post_script
        self.metadata = list(metadata) if metadata else []

        if publisher is None:
            post_action = PostUploadAction(post_script) if post_script else None
            publisher = BuildPublisher(timeout=timeout, post_action=post_action)
        self.publisher = publisher

    @classmethod
    def from_config(cls, config: Config, extra_metadata: Optional[List[MetadataEntry]] = None) -> "UploadBuildNotifier":
        """
        Create a notifier from loaded configuration.

        Args:
            config (Config): Loaded configuration
            extra_metadata (Optional[List[MetadataEntry]]): Entries appended after the configured ones
        """
        return cls(
            url=config.papyrus_url,
            access_token=config.papyrus_access_token,
            project=config.project,
            version=config.version,
            file_name=config.file_name,
            post_script=config.post_script,
            metadata=list(config.metadata) + list(extra_metadata or []),
            timeout=config.request_timeout
        )

    def metadata_map(self) -> Dict[str, str]:
        return collapse_metadata(self.metadata)

    def build_descriptor(self, build: BuildContext) -> BuildDescriptor:
        """Describe ``build`` for the CreateBuild call."""
        metadata = MappingProxyType(self.metadata_map()) if self.metadata else None
        return BuildDescriptor(
            project=self.project,
            version=self.version,
            build=str(build.number),
            result=build.result,
            start_timestamp=build.start_time_ms,
            duration_ms=build.duration_ms,
            file_extension=file_extension(self.file_name),
            commits=tuple(build.change_set),
            metadata=metadata
        )

    def publish(self, build: BuildContext) -> PublishOutcome:
        """Publish ``build`` and return the detailed outcome."""
        set_build_id(f"{self.project}#{build.number}")
        try:
            descriptor = self.build_descriptor(build)
            artifact_path = build.workspace / self.file_name
            logger.info(
                "Publishing %s %s build #%s (%s) to %s",
                self.project, self.version, descriptor.build, descriptor.result.value, self.url
            )
            outcome = self.publisher.publish(descriptor, artifact_path, self.access_token, self.url)
            if not outcome.succeeded:
                logger.error("Publishing to papyrus failed during %s: %s", outcome.phase.value, outcome.message)
            return outcome
        finally:
            clear_build_id()

    def perform(self, build: BuildContext) -> bool:
        """
        Build step body invoked by the host.

        Returns:
            bool: True when the build was recorded (and, for successful builds, uploaded)
        """
        return self.publish(build).succeeded
