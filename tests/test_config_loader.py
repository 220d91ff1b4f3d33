"""
Unit tests for config_loader.py

Test coverage for configuration loading and validation including:
- Required environment variables
- Default values for optional settings
- URL trimming and validation
- Metadata parsing
- Timeout and log level validation
- Jenkins API settings
"""

import unittest
import os
from pathlib import Path
import sys

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from papyrus_notifier.config_loader import ConfigLoader, Config, parse_metadata
from papyrus_notifier.models import MetadataEntry


class TestConfigLoader(unittest.TestCase):
    """Test cases for ConfigLoader class."""

    def setUp(self):
        """Save and clear environment variables."""
        self.original_env = os.environ.copy()
        for key in list(os.environ.keys()):
            if key.startswith(('PAPYRUS_', 'LOG_', 'JENKINS_', 'RETRY_')) or key in (
                    'JOB_NAME', 'BUILD_NUMBER', 'WORKSPACE'):
                del os.environ[key]

        os.environ['PAPYRUS_URL'] = 'https://papyrus.example.com'
        os.environ['PAPYRUS_ACCESS_TOKEN'] = 'dXNlcjpwYXNzd29yZA=='
        os.environ['PAPYRUS_PROJECT'] = 'purpur'
        os.environ['PAPYRUS_VERSION'] = '1.20.1'
        os.environ['PAPYRUS_FILE_NAME'] = 'build/libs/purpur.jar'

    def tearDown(self):
        """Restore environment variables."""
        os.environ.clear()
        os.environ.update(self.original_env)

    def test_load_with_minimum_required_config(self):
        """Test loading with only required environment variables."""
        config = ConfigLoader.load()

        self.assertEqual(config.papyrus_url, 'https://papyrus.example.com')
        self.assertEqual(config.papyrus_access_token, 'dXNlcjpwYXNzd29yZA==')
        self.assertEqual(config.project, 'purpur')
        self.assertEqual(config.version, '1.20.1')
        self.assertEqual(config.file_name, 'build/libs/purpur.jar')
        self.assertIsNone(config.post_script)
        self.assertEqual(config.metadata, [])
        self.assertIsNone(config.request_timeout)  # Default
        self.assertEqual(config.log_level, 'INFO')  # Default
        self.assertIsNone(config.log_output_dir)  # Default
        self.assertEqual(config.workspace, '.')  # Default
        self.assertFalse(config.jenkins_api_enabled)

    def test_missing_required_variables(self):
        """Each required variable is reported by name."""
        for name in ['PAPYRUS_URL', 'PAPYRUS_ACCESS_TOKEN', 'PAPYRUS_PROJECT',
                     'PAPYRUS_VERSION', 'PAPYRUS_FILE_NAME']:
            saved = os.environ.pop(name)
            with self.assertRaises(ValueError) as context:
                ConfigLoader.load()
            self.assertIn(name, str(context.exception))
            os.environ[name] = saved

    def test_blank_required_variable(self):
        os.environ['PAPYRUS_PROJECT'] = '   '

        with self.assertRaises(ValueError) as context:
            ConfigLoader.load()

        self.assertIn('PAPYRUS_PROJECT', str(context.exception))

    def test_url_trailing_slash_removal(self):
        os.environ['PAPYRUS_URL'] = ' https://papyrus.example.com// '

        config = ConfigLoader.load()

        self.assertEqual(config.papyrus_url, 'https://papyrus.example.com')

    def test_invalid_url_scheme(self):
        os.environ['PAPYRUS_URL'] = 'papyrus.example.com'

        with self.assertRaises(ValueError) as context:
            ConfigLoader.load()

        self.assertIn('PAPYRUS_URL', str(context.exception))

    def test_metadata_parsing(self):
        os.environ['PAPYRUS_METADATA'] = 'env=prod, branch=ver/1.20.1,'

        config = ConfigLoader.load()

        self.assertEqual(config.metadata, [MetadataEntry('env', 'prod'), MetadataEntry('branch', 'ver/1.20.1')])

    def test_invalid_metadata(self):
        os.environ['PAPYRUS_METADATA'] = 'env'

        with self.assertRaises(ValueError) as context:
            ConfigLoader.load()

        self.assertIn('PAPYRUS_METADATA', str(context.exception))

    def test_timeout(self):
        os.environ['PAPYRUS_TIMEOUT'] = '45'

        config = ConfigLoader.load()

        self.assertEqual(config.request_timeout, 45.0)

    def test_timeout_out_of_range(self):
        for value in ['0', '3601', 'soon']:
            os.environ['PAPYRUS_TIMEOUT'] = value
            with self.assertRaises(ValueError) as context:
                ConfigLoader.load()
            self.assertIn('PAPYRUS_TIMEOUT', str(context.exception))

    def test_log_level_case_insensitive(self):
        os.environ['LOG_LEVEL'] = 'debug'

        config = ConfigLoader.load()

        self.assertEqual(config.log_level, 'DEBUG')

    def test_invalid_log_level(self):
        os.environ['LOG_LEVEL'] = 'VERBOSE'

        with self.assertRaises(ValueError) as context:
            ConfigLoader.load()

        self.assertIn('LOG_LEVEL', str(context.exception))

    def test_jenkins_build_environment(self):
        """Variables exported by Jenkins are picked up."""
        os.environ['JENKINS_URL'] = 'https://jenkins.example.com/'
        os.environ['JOB_NAME'] = 'purpur/ver%2F1.20.1'
        os.environ['BUILD_NUMBER'] = '1234'
        os.environ['WORKSPACE'] = '/var/jenkins/workspace/purpur'

        config = ConfigLoader.load()

        self.assertEqual(config.jenkins_url, 'https://jenkins.example.com')
        self.assertEqual(config.build_number, 1234)
        self.assertEqual(config.workspace, '/var/jenkins/workspace/purpur')
        # JENKINS_URL alone does not enable API access
        self.assertFalse(config.jenkins_api_enabled)

    def test_jenkins_api_enabled(self):
        os.environ['JENKINS_URL'] = 'https://jenkins.example.com'
        os.environ['JENKINS_USER'] = 'ci'
        os.environ['JENKINS_API_TOKEN'] = '11aa22bb33cc'

        config = ConfigLoader.load()

        self.assertTrue(config.jenkins_api_enabled)

    def test_jenkins_credentials_without_url(self):
        os.environ['JENKINS_USER'] = 'ci'
        os.environ['JENKINS_API_TOKEN'] = '11aa22bb33cc'

        with self.assertRaises(ValueError) as context:
            ConfigLoader.load()

        self.assertIn('JENKINS_URL', str(context.exception))

    def test_invalid_build_number(self):
        os.environ['BUILD_NUMBER'] = 'lastSuccessful'

        with self.assertRaises(ValueError) as context:
            ConfigLoader.load()

        self.assertIn('BUILD_NUMBER', str(context.exception))


class TestParseMetadata(unittest.TestCase):
    """Test cases for parse_metadata."""

    def test_empty(self):
        self.assertEqual(parse_metadata(None), [])
        self.assertEqual(parse_metadata(''), [])

    def test_duplicates_kept_in_order(self):
        """Duplicates are resolved later, when the metadata is collapsed."""
        self.assertEqual(
            parse_metadata('env=prod,env=staging'),
            [MetadataEntry('env', 'prod'), MetadataEntry('env', 'staging')]
        )


class TestConfigValidate(unittest.TestCase):
    """Test cases for ConfigLoader.validate."""

    def test_valid(self):
        config = Config(
            papyrus_url='http://localhost:8080',
            papyrus_access_token='token',
            project='purpur',
            version='1.20.1',
            file_name='purpur.jar'
        )
        self.assertTrue(ConfigLoader.validate(config))

    def test_negative_retry(self):
        config = Config(
            papyrus_url='http://localhost:8080',
            papyrus_access_token='token',
            project='purpur',
            version='1.20.1',
            file_name='purpur.jar',
            retry_attempts=-1
        )
        with self.assertRaises(ValueError):
            ConfigLoader.validate(config)


if __name__ == '__main__':
    unittest.main()
