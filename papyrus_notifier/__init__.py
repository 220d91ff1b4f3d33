"""
papyrus notifier

Reports finished CI builds to a papyrus server and uploads their artifacts.
"""

from .build_publisher import BuildPublisher
from .models import (
    BuildContext,
    BuildDescriptor,
    BuildResult,
    CommitRecord,
    MetadataEntry,
    PublishOutcome,
    PublishPhase,
    PublishState,
)
from .notifier import UploadBuildNotifier

__version__ = "1.0.0"
