"""
Application settings loaded from environment variables.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── OAuth.io broker ─────────────────────────────────────────────────
    oauthio_public_key: str = ""        # broker app public key (client_id)
    oauthio_secret_key: str = ""        # broker app secret key (client_secret)
    oauthio_site: str = "https://oauth.io"
    oauthio_authorize_path: str = "/auth/:provider"
    oauthio_token_path: str = "/auth/access_token"
    oauthio_profile_path: str = "/auth/:provider/me"
    oauthio_token_method: str = "POST"
    oauthio_max_redirects: int = 5
    oauthio_raise_on_error: bool = True
    oauthio_timeout: float = 30.0       # seconds, per HTTP call

    # ── Callback / CSRF state ───────────────────────────────────────────
    oauth_redirect_base: str = "http://localhost:8000"  # base URL for OAuth callbacks
    oauth_state_secret: str = "change-me-oauth-state"   # HMAC secret for the pending-state cookie
    oauth_state_ttl: int = 600                          # seconds a login attempt stays valid

    # ── Server ───────────────────────────────────────────────────────────
    port: int = 8000
    host: str = "0.0.0.0"
    debug: bool = False
    cors_origins: list = ["*"]

    model_config = {
        "env_file": ".env",
        "case_sensitive": False,
    }

    def callback_url(self, provider: str) -> str:
        """Absolute callback URL the broker redirects back to."""
        return f"{self.oauth_redirect_base}/auth/{provider}/callback"


config = Settings()
