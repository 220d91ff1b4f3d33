"""
Unit tests for models.py
"""

import unittest

from papyrus_notifier.models import (
    BuildDescriptor,
    BuildResult,
    CommitRecord,
    MetadataEntry,
    PublishOutcome,
    PublishPhase,
    PublishState,
    collapse_metadata,
    file_extension,
)


class TestFileExtension(unittest.TestCase):
    """Test cases for file_extension."""

    def test_simple_extension(self):
        self.assertEqual(file_extension("build-1234.jar"), "jar")

    def test_no_extension(self):
        self.assertIsNone(file_extension("build"))

    def test_everything_after_first_dot(self):
        self.assertEqual(file_extension("purpur.tar.gz"), "tar.gz")

    def test_directories_ignored(self):
        """Dots in directory names do not count."""
        self.assertEqual(file_extension("build.v2/libs/purpur.jar"), "jar")
        self.assertIsNone(file_extension("./out/purpur"))


class TestCollapseMetadata(unittest.TestCase):
    """Test cases for collapse_metadata."""

    def test_last_write_wins(self):
        entries = [MetadataEntry("env", "prod"), MetadataEntry("env", "staging")]

        with self.assertLogs('papyrus_notifier.models', level='WARNING') as logs:
            metadata = collapse_metadata(entries)

        self.assertEqual(metadata, {"env": "staging"})
        self.assertIn("env", logs.output[0])

    def test_empty(self):
        self.assertEqual(collapse_metadata([]), {})

    def test_keeps_order(self):
        entries = [MetadataEntry("b", "1"), MetadataEntry("a", "2"), MetadataEntry("b", "3")]
        self.assertEqual(list(collapse_metadata(entries).items()), [("b", "3"), ("a", "2")])


class TestMetadataEntry(unittest.TestCase):
    """Test cases for MetadataEntry."""

    def test_parse(self):
        self.assertEqual(MetadataEntry.parse(" branch = ver/1.20 "), MetadataEntry("branch", "ver/1.20"))

    def test_parse_keeps_equals_in_value(self):
        self.assertEqual(MetadataEntry.parse("query=a=b").value, "a=b")

    def test_parse_invalid(self):
        with self.assertRaises(ValueError):
            MetadataEntry.parse("novalue")
        with self.assertRaises(ValueError):
            MetadataEntry.parse("=value")

    def test_equality_uses_value(self):
        """Entries with the same key but different values are different."""
        self.assertNotEqual(MetadataEntry("env", "prod"), MetadataEntry("env", "staging"))


class TestBuildResult(unittest.TestCase):
    """Test cases for BuildResult.from_ci."""

    def test_success(self):
        self.assertEqual(BuildResult.from_ci("SUCCESS"), BuildResult.SUCCESS)
        self.assertEqual(BuildResult.from_ci("success"), BuildResult.SUCCESS)

    def test_everything_else_is_failure(self):
        for value in ["FAILURE", "UNSTABLE", "ABORTED", "NOT_BUILT", "", None]:
            self.assertEqual(BuildResult.from_ci(value), BuildResult.FAILURE)


class TestBuildDescriptor(unittest.TestCase):
    """Test cases for BuildDescriptor.to_payload."""

    def setUp(self):
        self.commit = CommitRecord(
            author="Jane Doe",
            email="jane@example.com",
            description="Fix chunk loading",
            commit_hash="0123456789abcdef",
            timestamp_seconds=1700000000
        )

    def test_payload_fields(self):
        descriptor = BuildDescriptor(
            project="purpur",
            version="1.20.1",
            build="1234",
            result=BuildResult.SUCCESS,
            start_timestamp=1700000000000,
            duration_ms=90000,
            file_extension="jar",
            commits=(self.commit,),
            metadata={"env": "prod"}
        )

        payload = descriptor.to_payload()

        self.assertEqual(payload, {
            "project": "purpur",
            "version": "1.20.1",
            "build": "1234",
            "result": "SUCCESS",
            "timestamp": 1700000000000,
            "duration": 90000,
            "fileExtension": "jar",
            "commits": [{
                "author": "Jane Doe",
                "email": "jane@example.com",
                "description": "Fix chunk loading",
                "hash": "0123456789abcdef",
                "timestamp": 1700000000
            }],
            "metadata": {"env": "prod"}
        })

    def test_metadata_omitted_when_empty(self):
        for metadata in (None, {}):
            descriptor = BuildDescriptor(
                project="purpur",
                version="1.20.1",
                build="1",
                result=BuildResult.FAILURE,
                start_timestamp=0,
                duration_ms=0,
                metadata=metadata
            )
            self.assertNotIn("metadata", descriptor.to_payload())

    def test_missing_extension_serialized_as_null(self):
        descriptor = BuildDescriptor(
            project="purpur", version="1.20.1", build="1",
            result=BuildResult.SUCCESS, start_timestamp=0, duration_ms=0
        )
        payload = descriptor.to_payload()
        self.assertIn("fileExtension", payload)
        self.assertIsNone(payload["fileExtension"])
        self.assertEqual(payload["commits"], [])


class TestPublishOutcome(unittest.TestCase):
    """Test cases for PublishOutcome constructors."""

    def test_success_uploaded(self):
        outcome = PublishOutcome.success(uploaded=True)
        self.assertTrue(outcome.succeeded)
        self.assertEqual(outcome.state, PublishState.UPLOADED)
        self.assertIsNone(outcome.phase)

    def test_success_skipped(self):
        outcome = PublishOutcome.success(uploaded=False)
        self.assertEqual(outcome.state, PublishState.SKIPPED_UPLOAD)

    def test_failure_states(self):
        create = PublishOutcome.failure(PublishPhase.CREATE_BUILD, "build already exists")
        upload = PublishOutcome.failure(PublishPhase.UPLOAD_ARTIFACT, "file does not exist")

        self.assertFalse(create.succeeded)
        self.assertEqual(create.state, PublishState.CREATE_FAILED)
        self.assertEqual(upload.state, PublishState.UPLOAD_FAILED)
        self.assertEqual(upload.message, "file does not exist")


if __name__ == '__main__':
    unittest.main()
