import logging
import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from quickhand.config import load_settings
from quickhand.logging_config import setup_logging
from quickhand.roles import DEFAULT_ROLE_KEY, ROLE_PRESETS, resolve_role


class SettingsTests(unittest.TestCase):
    def test_defaults_without_environment(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = load_settings()
        self.assertIsNone(settings.llm_api_key)
        self.assertEqual(settings.llm_provider, "openai")
        self.assertEqual(settings.llm_model, "gpt-4o-mini")
        self.assertEqual(settings.search_timeout_seconds, 8)
        self.assertEqual(settings.reasoner_timeout_seconds, 15)
        self.assertEqual(settings.generation_timeout_seconds, 30)
        self.assertEqual(settings.memory_timeout_seconds, 5)
        self.assertEqual(settings.integrations_table, "user_integrations")

    def test_openai_key_fallback_and_clamping(self):
        env = {
            "OPENAI_API_KEY": "sk-openai",
            "SEARCH_TIMEOUT_SECONDS": "500",
            "REASONER_TIMEOUT_SECONDS": "abc",
            "MEMORY_SEARCH_LIMIT": "0",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = load_settings()
        self.assertEqual(settings.llm_api_key, "sk-openai")
        self.assertEqual(settings.search_timeout_seconds, 30)
        self.assertEqual(settings.reasoner_timeout_seconds, 15)
        self.assertEqual(settings.memory_search_limit, 1)

    def test_explicit_llm_key_wins(self):
        with patch.dict(os.environ, {"OPENAI_API_KEY": "a", "QUICKHAND_LLM_API_KEY": "b"}, clear=True):
            self.assertEqual(load_settings().llm_api_key, "b")


class RolePresetTests(unittest.TestCase):
    def test_seven_roles_with_few_shot_examples(self):
        self.assertEqual(
            set(ROLE_PRESETS),
            {"founder", "student", "teacher", "creator", "propertyAgent", "productManager", "general"},
        )
        for profile in ROLE_PRESETS.values():
            self.assertTrue(profile.system_prompt)
            self.assertTrue(profile.few_shot_examples.search_example.user)
            self.assertTrue(profile.few_shot_examples.email_example.assistant)

    def test_unknown_role_falls_back_to_general(self):
        self.assertEqual(resolve_role("astronaut").key, DEFAULT_ROLE_KEY)
        self.assertEqual(resolve_role(None).key, DEFAULT_ROLE_KEY)
        self.assertEqual(resolve_role("founder").key, "founder")

    def test_presets_are_read_only(self):
        with self.assertRaises(TypeError):
            ROLE_PRESETS["hacker"] = ROLE_PRESETS["general"]

    def test_custom_presets_require_general(self):
        with self.assertRaises(ValueError):
            resolve_role("x", presets={"founder": ROLE_PRESETS["founder"]})


class LoggingSetupTests(unittest.TestCase):
    def test_file_handler_is_added_once(self):
        root = logging.getLogger()
        before = list(root.handlers)
        level = root.level
        with tempfile.TemporaryDirectory() as tmp:
            target = Path(tmp) / "logs" / "quickhand.log"
            try:
                first = setup_logging("DEBUG", str(target))
                second = setup_logging("DEBUG", str(target))
                added = [
                    handler
                    for handler in root.handlers
                    if handler not in before and isinstance(handler, logging.FileHandler)
                ]
                self.assertEqual(first, target.resolve())
                self.assertEqual(second, target.resolve())
                self.assertEqual(len(added), 1)
                self.assertTrue(target.parent.is_dir())
            finally:
                for handler in root.handlers[:]:
                    if handler not in before:
                        root.removeHandler(handler)
                        handler.close()
                root.setLevel(level)


if __name__ == "__main__":
    unittest.main()
