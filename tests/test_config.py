import os
import sys
import unittest
from unittest.mock import patch

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from mip_core.config import MIPConfig
from mip_core.errors import ConfigurationError


class TestMIPConfig(unittest.TestCase):

    def test_01_defaults(self):
        config = MIPConfig.load()
        self.assertEqual(config.BACKEND_URL, "http://localhost:5002")
        self.assertEqual(config.START_TIMEOUT_SEC, 30.0)
        self.assertEqual(config.PERSIST_TIMEOUT_SEC, 15.0)
        self.assertEqual(config.GREETING_DELAY_SEC, 3.0)
        self.assertEqual(config.RECORDING_TIMESLICE_MS, 1000)
        self.assertEqual(config.AUDIO_MIME_PREFERENCES[0], "audio/webm;codecs=opus")
        self.assertEqual(config.RECONCILE_MATCH_STRATEGY, "INDEX")

    def test_02_environment_overrides(self):
        with patch.dict(os.environ, {"BACKEND_URL": "http://api.example.com", "EVALUATE_TIMEOUT_SEC": "12.5"}):
            config = MIPConfig.load()
        self.assertEqual(config.BACKEND_URL, "http://api.example.com")
        self.assertEqual(config.EVALUATE_TIMEOUT_SEC, 12.5)

    def test_03_invalid_value_wrapped(self):
        with patch.dict(os.environ, {"RECORDING_TIMESLICE_MS": "not-a-number"}):
            with self.assertRaises(ConfigurationError) as ctx:
                MIPConfig.load()
        self.assertEqual(ctx.exception.code, "CONF_Error")

    def test_04_unknown_match_strategy_rejected(self):
        with patch.dict(os.environ, {"RECONCILE_MATCH_STRATEGY": "FUZZY"}):
            with self.assertRaises(ConfigurationError):
                MIPConfig.load()


if __name__ == "__main__":
    unittest.main()
