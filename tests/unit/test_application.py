import pytest
from unittest.mock import patch

from papermind.application import PaperMindApp
from papermind.config import AppConfig

from tests.helpers import StubProvider


@pytest.fixture
def config(tmp_path):
    app_config = AppConfig(settings_path=tmp_path / "papermind.conf")
    app_config.set_data_dir(str(tmp_path / "data"))
    app_config.set_max_workers(1)
    return app_config


def test_components_share_storage(config, tmp_path):
    app = PaperMindApp(config, provider=StubProvider())
    try:
        assert app.pipeline.documents is app.documents
        assert app.rules.documents is app.documents
        assert app.consume_watcher.consume_dir == app.vault.consume_dir
        assert app.consume_watcher.consume_dir.is_relative_to(tmp_path / "data")
        assert app.gateway.retries == config.get_ai_retries()
        assert app.vocabulary.repository("tags") is app.tags
        assert app.vocabulary.rules is app.rule_repo
        # Mailbox is not configured yet
        assert app.mail_watcher.scan_once() == 0
    finally:
        app.shutdown()

    assert app.db.connection is None


def test_provider_comes_from_config(config):
    config.set_ai_provider("openrouter")
    config.set_embed_provider("gemini")
    with patch("papermind.application.create_provider", side_effect=lambda cfg, name: StubProvider()) as create:
        app = PaperMindApp(config)
    try:
        assert [c.args[1] for c in create.call_args_list] == ["openrouter", "gemini"]
    finally:
        app.shutdown()
