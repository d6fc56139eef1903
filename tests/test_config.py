"""
Environment configuration.
"""

import os
import unittest
from unittest import mock

from pkio.config import (
    Settings,
    describe_settings,
    get_settings,
    reload_settings,
    settings_from_env,
    validate_settings,
)


class TestSettings(unittest.TestCase):

    def tearDown(self):
        get_settings.cache_clear()

    def test_defaults(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            settings = settings_from_env()
        self.assertEqual(settings, Settings())
        self.assertEqual(settings.rsa_key_size, 2048)
        self.assertEqual(settings.ec_curve, "secp256r1")
        self.assertEqual(settings.salt_size, 16)

    def test_environment_overrides(self):
        env = {
            "PKIO_RSA_KEY_SIZE": "3072",
            "PKIO_EC_CURVE": "SECP384R1",
            "PKIO_SALT_SIZE": "32",
            "PKIO_LOG_LEVEL": "debug",
            "PKIO_LOG_JSON": "false",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            settings = reload_settings()
        self.assertEqual(settings.rsa_key_size, 3072)
        self.assertEqual(settings.ec_curve, "secp384r1")
        self.assertEqual(settings.salt_size, 32)
        self.assertEqual(settings.log_level, "DEBUG")
        self.assertFalse(settings.log_json)

    def test_cached_until_reload(self):
        with mock.patch.dict(os.environ, {"PKIO_SALT_SIZE": "24"}, clear=True):
            reload_settings()
            with mock.patch.dict(os.environ, {"PKIO_SALT_SIZE": "40"}):
                self.assertEqual(get_settings().salt_size, 24)
                self.assertEqual(reload_settings().salt_size, 40)

    def test_invalid_values(self):
        cases = [
            {"PKIO_RSA_KEY_SIZE": "1024"},
            {"PKIO_RSA_KEY_SIZE": "big"},
            {"PKIO_EC_CURVE": "secp256k1"},
            {"PKIO_SALT_SIZE": "8"},
            {"PKIO_LOG_LEVEL": "LOUD"},
        ]
        for env in cases:
            with self.subTest(env=env):
                with mock.patch.dict(os.environ, env, clear=True):
                    with self.assertRaises(ValueError):
                        settings_from_env()

    def test_validate_returns_settings(self):
        settings = Settings(rsa_key_size=4096)
        self.assertIs(validate_settings(settings), settings)

    def test_describe(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            reload_settings()
            described = describe_settings()
        self.assertEqual(described["rsa_key_size"], "2048")
        self.assertEqual(described["log_json"], "true")


if __name__ == "__main__":
    unittest.main()
