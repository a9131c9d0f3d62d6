"""Shared fixtures for the hawkdog test-suite."""

import json

import pytest

from hawkdog.config import Config


@pytest.fixture
def config_data(tmp_path):
    return {
        "sentinelPath": str(tmp_path / "creds" / "aws_creds_cache.ini"),
        "telegramBotToken": "123:abc",
        "telegramChatId": 42,
        "emailTo": "ops@example.org",
        "emailFrom": "hawkdog@example.org",
    }


@pytest.fixture
def config_file(tmp_path, config_data):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(config_data))
    return path


@pytest.fixture
def config(config_data):
    data = dict(config_data, startupSuppressSeconds=0, lookupOpeners=False)
    return Config.from_dict(data)
