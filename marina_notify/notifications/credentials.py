"""Service-account credential parsing and OAuth2 access token exchange."""

from __future__ import annotations

import asyncio
import base64
import binascii
import hashlib
import json
import logging
import time
from collections.abc import Callable

import httpx
import jwt
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization

from marina_notify.notifications.contracts import AccessToken, CredentialEncoding, CredentialError, CredentialErrorKind, ParsedCredential, ServiceAccountCredential

logger = logging.getLogger(__name__)

TOKEN_ENDPOINT = "https://oauth2.googleapis.com/token"
FCM_SCOPE = "https://www.googleapis.com/auth/firebase.messaging"
JWT_BEARER_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:jwt-bearer"
ASSERTION_LIFETIME_SECONDS = 3600
DEFAULT_TOKEN_LIFETIME_SECONDS = 3600


def parse_service_account(raw: str | None) -> ParsedCredential:
  """Parse a credential supplied as raw JSON or as base64-encoded JSON."""
  if raw is None or raw.strip() == "":
    return ParsedCredential(encoding=CredentialEncoding.MALFORMED, error="credential is empty")

  encoding = CredentialEncoding.RAW
  try:
    payload = json.loads(raw)
  except json.JSONDecodeError:
    # Base64 text may arrive line-wrapped.
    compact = "".join(raw.split())
    try:
      payload = json.loads(base64.b64decode(compact, validate=True).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError):
      return ParsedCredential(encoding=CredentialEncoding.MALFORMED, error="credential is neither JSON nor base64-encoded JSON")
    encoding = CredentialEncoding.ENCODED

  if not isinstance(payload, dict):
    return ParsedCredential(encoding=CredentialEncoding.MALFORMED, error="credential must be a JSON object")

  client_email = payload.get("client_email")
  private_key = payload.get("private_key")
  if not isinstance(client_email, str) or not client_email.strip():
    return ParsedCredential(encoding=CredentialEncoding.MALFORMED, error="credential is missing client_email")
  if not isinstance(private_key, str) or not private_key.strip():
    return ParsedCredential(encoding=CredentialEncoding.MALFORMED, error="credential is missing private_key")

  project_id = payload.get("project_id")
  credential = ServiceAccountCredential(
    issuer_email=client_email.strip(),
    # Single-line env vars carry escaped newlines.
    private_key_pem=private_key.replace("\\n", "\n"),
    project_id=_optional_text(project_id),
  )
  return ParsedCredential(encoding=encoding, credential=credential)


def load_service_account(raw: str | None) -> ServiceAccountCredential:
  """Parse a credential or raise `CredentialError` when it is malformed."""
  parsed = parse_service_account(raw)
  if not parsed.is_valid or parsed.credential is None:
    raise CredentialError(f"Failed to parse FCM service account credentials: {parsed.error}", kind=CredentialErrorKind.MALFORMED)
  return parsed.credential


def credential_identity(credential: ServiceAccountCredential) -> str:
  """Cache key for a credential: issuer plus a fingerprint of the signing key."""
  fingerprint = hashlib.sha256(credential.private_key_pem.encode("utf-8")).hexdigest()[:16]
  return f"{credential.issuer_email}:{fingerprint}"


def build_assertion(credential: ServiceAccountCredential, *, issued_at: int, audience: str = TOKEN_ENDPOINT) -> str:
  """Mint the RS256-signed JWT assertion for the jwt-bearer grant."""
  try:
    private_key = serialization.load_pem_private_key(credential.private_key_pem.encode("utf-8"), password=None)
  except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
    raise CredentialError("Service account private key could not be loaded.", kind=CredentialErrorKind.MALFORMED) from exc

  claims = {"iss": credential.issuer_email, "sub": credential.issuer_email, "scope": FCM_SCOPE, "aud": audience, "iat": issued_at, "exp": issued_at + ASSERTION_LIFETIME_SECONDS}
  try:
    return jwt.encode(claims, private_key, algorithm="RS256", headers={"typ": "JWT"})
  except (jwt.PyJWTError, ValueError, TypeError) as exc:
    raise CredentialError("Service account assertion could not be signed.", kind=CredentialErrorKind.MALFORMED) from exc


class CredentialStore:
  """Owns the access token cache, keyed by credential identity.

  Tokens are refreshed once fewer than `refresh_margin_seconds` remain, and
  concurrent callers for the same identity share a single exchange.
  """

  def __init__(self, *, http_client: httpx.AsyncClient, token_endpoint: str = TOKEN_ENDPOINT, timeout_seconds: float = 10.0, refresh_margin_seconds: int = 60, clock: Callable[[], float] = time.time) -> None:
    self._http_client = http_client
    self._token_endpoint = token_endpoint
    self._timeout_seconds = timeout_seconds
    self._refresh_margin_seconds = refresh_margin_seconds
    self._clock = clock
    self._cache: dict[str, AccessToken] = {}
    self._locks: dict[str, asyncio.Lock] = {}

  async def get_access_token(self, credential: ServiceAccountCredential) -> AccessToken:
    """Return a cached token while it is fresh, otherwise exchange a new one."""
    identity = credential_identity(credential)
    cached = self._cache.get(identity)
    if cached is not None and self._is_fresh(cached):
      return cached

    lock = self._locks.setdefault(identity, asyncio.Lock())
    async with lock:
      # Another caller may have refreshed while this one waited.
      cached = self._cache.get(identity)
      if cached is not None and self._is_fresh(cached):
        return cached

      token = await self._exchange(credential)
      self._cache[identity] = token
      logger.info("Access token refreshed issuer=%s expires_at=%s", credential.issuer_email, int(token.expires_at))
      return token

  def invalidate(self, credential: ServiceAccountCredential) -> None:
    self._cache.pop(credential_identity(credential), None)

  def _is_fresh(self, token: AccessToken) -> bool:
    return token.expires_at - self._clock() > self._refresh_margin_seconds

  async def _exchange(self, credential: ServiceAccountCredential) -> AccessToken:
    issued_at = int(self._clock())
    assertion = build_assertion(credential, issued_at=issued_at, audience=self._token_endpoint)

    try:
      response = await self._http_client.post(self._token_endpoint, data={"grant_type": JWT_BEARER_GRANT_TYPE, "assertion": assertion}, timeout=self._timeout_seconds)
    except httpx.HTTPError as exc:
      logger.error("Access token exchange request failed issuer=%s error=%s", credential.issuer_email, exc)
      raise CredentialError("Access token exchange request failed.", kind=CredentialErrorKind.EXCHANGE_FAILED) from exc

    if not response.is_success:
      logger.error("Access token exchange rejected issuer=%s status=%s body=%s", credential.issuer_email, response.status_code, response.text)
      raise CredentialError(f"Access token exchange rejected (status={response.status_code}).", kind=CredentialErrorKind.EXCHANGE_FAILED)

    try:
      payload = response.json()
    except ValueError as exc:
      raise CredentialError("Access token response is not JSON.", kind=CredentialErrorKind.MALFORMED_RESPONSE) from exc

    access_token = payload.get("access_token") if isinstance(payload, dict) else None
    if not isinstance(access_token, str) or access_token == "":
      raise CredentialError("Access token response is missing access_token.", kind=CredentialErrorKind.MALFORMED_RESPONSE)

    expires_in = _parse_expires_in(payload.get("expires_in"))
    return AccessToken(value=access_token, expires_at=issued_at + expires_in)


def _parse_expires_in(raw: object) -> int:
  try:
    value = int(raw)  # type: ignore[arg-type]
  except (TypeError, ValueError):
    return DEFAULT_TOKEN_LIFETIME_SECONDS
  if value <= 0:
    return DEFAULT_TOKEN_LIFETIME_SECONDS
  return value


def _optional_text(raw: object) -> str | None:
  if raw is None:
    return None
  value = str(raw).strip()
  return value or None
