import os

from campfire.settings import Settings


def test_defaults():
    s = Settings()
    assert s.timeout_seconds == 30.0
    assert s.max_redirects == 10
    assert s.user_agent == "Campfire/1.0"
    assert s.ssl_verify is True


def test_from_env(monkeypatch, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("CAMPFIRE_USER_AGENT=FromDotenv/2.0\n")
    monkeypatch.setenv("CAMPFIRE_TIMEOUT", "5")
    monkeypatch.setenv("CAMPFIRE_MAX_REDIRECTS", "3")
    monkeypatch.setenv("SSL_VERIFY", "false")
    monkeypatch.delenv("CAMPFIRE_USER_AGENT", raising=False)

    s = Settings.from_env(str(env_file))
    # load_dotenv writes straight into os.environ
    os.environ.pop("CAMPFIRE_USER_AGENT", None)

    assert s.timeout_seconds == 5.0
    assert s.max_redirects == 3
    assert s.ssl_verify is False
    assert s.user_agent == "FromDotenv/2.0"
