"""Unit tests for confluence_client.auth module."""

from unittest.mock import patch

import pytest

from confluence_mirror.confluence_client.auth import Authenticator, Credentials
from confluence_mirror.confluence_client.errors import InvalidCredentialsError

ENV = {
    'CONFLUENCE_URL': 'https://test.atlassian.net/wiki/',
    'CONFLUENCE_USER': 'test@example.com',
    'CONFLUENCE_API_TOKEN': 'test-token-123',
}


class TestCredentials:
    """Test cases for Credentials NamedTuple."""

    def test_credentials_are_immutable(self):
        """Credentials fields cannot be modified after creation."""
        creds = Credentials(url="https://test.atlassian.net/wiki", user="u", api_token="t")
        with pytest.raises(AttributeError):
            creds.url = "different-url"


class TestAuthenticator:
    """Test cases for Authenticator class."""

    @patch('confluence_mirror.confluence_client.auth.load_dotenv')
    def test_init_loads_dotenv(self, mock_load_dotenv):
        """Authenticator loads the given .env file."""
        Authenticator(env_file=".env.local")
        mock_load_dotenv.assert_called_once_with(dotenv_path=".env.local")

    @patch('confluence_mirror.confluence_client.auth.load_dotenv')
    def test_get_credentials_success(self, mock_load_dotenv, monkeypatch):
        """All variables set returns credentials with the URL's trailing slash removed."""
        for key, value in ENV.items():
            monkeypatch.setenv(key, value)

        creds = Authenticator().get_credentials()

        assert creds == Credentials(
            url='https://test.atlassian.net/wiki',
            user='test@example.com',
            api_token='test-token-123',
        )

    @pytest.mark.parametrize("missing", sorted(ENV))
    @patch('confluence_mirror.confluence_client.auth.load_dotenv')
    def test_missing_variable_raises(self, mock_load_dotenv, monkeypatch, missing):
        """Any missing variable raises InvalidCredentialsError."""
        for key, value in ENV.items():
            monkeypatch.setenv(key, value)
        monkeypatch.delenv(missing)

        with pytest.raises(InvalidCredentialsError):
            Authenticator().get_credentials()
