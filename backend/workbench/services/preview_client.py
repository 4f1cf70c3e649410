"""
preview_client.py — Async adapter for the calculation / report collaborator.

Every preview request is stamped with a per-entity monotonic token.  A
response is applied only if its token is still the latest one issued for
that entity; anything older comes back as ``status="stale"`` so a slow
response can never overwrite a newer one.

Collaborator failures (transport errors, non-2xx, ``success: false``,
undecodable bodies) degrade to placeholder results and are logged; nothing
here raises into the session.
"""
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
from pydantic import ValidationError

from workbench import config
from workbench.models.catalog_schema import ProfileDataResponse, ProfileNamesResponse, WindLocationsResponse
from workbench.models.preview_models import (
    CalcPreviewRequest,
    CalcPreviewResponse,
    DocumentRequest,
    FigureCheckResponse,
    PreviewResult,
    SaveManualProfileRequest,
    WindPreviewRequest,
)
from workbench.services.serializer import PayloadIncomplete

logger = logging.getLogger("workbench-preview")

MSG_CALCULATING = "Calculating…"
MSG_FAILED = "Calculation failed"
MSG_ERROR = "Calculation error"
MSG_NO_DATA = "No data"

WIND_ENTITY_KEY = "wind"

# Profile previews whose computed properties are persisted by the collaborator
_SAVED_PROFILE_TYPES = ("Stick", "Manual")


class PreviewClient:
    def __init__(
        self,
        base_url: str = config.COLLABORATOR_URL,
        timeout: float = config.HTTP_TIMEOUT_S,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)
        self._tokens: Dict[str, int] = {}

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "PreviewClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ── Request tokens ────────────────────────────────────────────────────────

    def issue_token(self, entity_key: str) -> int:
        token = self._tokens.get(entity_key, 0) + 1
        self._tokens[entity_key] = token
        return token

    def is_latest(self, entity_key: str, token: int) -> bool:
        return self._tokens.get(entity_key) == token

    # ── Transport ─────────────────────────────────────────────────────────────

    async def _send(self, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> Optional[httpx.Response]:
        try:
            return await self._client.request(method, path, json=body)
        except httpx.HTTPError as exc:
            logger.warning("Collaborator %s %s failed: %s", method, path, exc)
            return None

    async def _get_json(self, path: str) -> Optional[Any]:
        response = await self._send("GET", path)
        if response is None:
            return None
        if not response.is_success:
            logger.warning("Collaborator GET %s returned %d", path, response.status_code)
            return None
        try:
            return response.json()
        except ValueError:
            logger.warning("Collaborator GET %s returned a non-JSON body", path)
            return None

    # ── Previews ──────────────────────────────────────────────────────────────

    def _placeholder(self, entity_key: str, token: int, message: str) -> PreviewResult:
        return PreviewResult(status="placeholder", entity_key=entity_key, request_token=token, message=message)

    def _stale(self, entity_key: str, token: int) -> PreviewResult:
        logger.debug("Discarding stale preview", extra={"entity": entity_key, "request_token": token})
        return PreviewResult(status="stale", entity_key=entity_key, request_token=token)

    async def _post_preview(self, entity_key: str, token: int, path: str, body: Dict[str, Any]):
        """POST a preview body; returns (result-or-None, parsed response)."""
        response = await self._send("POST", path, body)
        if not self.is_latest(entity_key, token):
            return self._stale(entity_key, token), None
        if response is None:
            return self._placeholder(entity_key, token, MSG_ERROR), None
        try:
            parsed = CalcPreviewResponse.model_validate(response.json())
        except (ValueError, ValidationError):
            logger.warning("Undecodable preview response from %s", path, extra={"entity": entity_key})
            return self._placeholder(entity_key, token, MSG_ERROR), None
        if not response.is_success or not parsed.success:
            logger.info(
                "Preview rejected: %s", parsed.error or response.status_code,
                extra={"entity": entity_key, "request_token": token},
            )
            return self._placeholder(entity_key, token, parsed.error or MSG_FAILED), None
        return None, parsed

    async def calc_preview(
        self,
        entity_key: str,
        item_type: str,
        build_payload: Callable[[], Dict[str, Any]],
    ) -> PreviewResult:
        """
        Request a cross-section preview for one item.

        ``build_payload`` raises PayloadIncomplete when inputs are missing;
        the placeholder still takes a token so older in-flight responses for
        the entity are discarded.
        """
        token = self.issue_token(entity_key)
        try:
            payload = build_payload()
        except PayloadIncomplete as exc:
            return self._placeholder(entity_key, token, exc.message)

        body = CalcPreviewRequest(item_type=item_type, payload=payload).model_dump()
        failed, parsed = await self._post_preview(entity_key, token, "/calc_preview", body)
        if failed is not None:
            return failed

        if item_type in ("alum_profile", "steel_profile") and payload.get("profile_type") in _SAVED_PROFILE_TYPES:
            await self.save_manual_profile(item_type, {**payload, **(parsed.result or {})})

        return PreviewResult(
            status="ok",
            entity_key=entity_key,
            request_token=token,
            html=parsed.html,
            message=None if parsed.html else MSG_NO_DATA,
            result=parsed.result,
        )

    async def wind_preview(self, build_payload: Callable[[], Dict[str, Any]]) -> PreviewResult:
        token = self.issue_token(WIND_ENTITY_KEY)
        try:
            payload = build_payload()
        except PayloadIncomplete as exc:
            return self._placeholder(WIND_ENTITY_KEY, token, exc.message)

        body = WindPreviewRequest(wind=payload).model_dump()
        failed, parsed = await self._post_preview(WIND_ENTITY_KEY, token, "/wind_preview", body)
        if failed is not None:
            return failed
        return PreviewResult(
            status="ok",
            entity_key=WIND_ENTITY_KEY,
            request_token=token,
            html=parsed.html,
            message=None if parsed.html else MSG_NO_DATA,
        )

    async def save_manual_profile(self, item_type: str, profile: Dict[str, Any]) -> bool:
        body = SaveManualProfileRequest(profile_type=item_type, profile=profile).model_dump()
        response = await self._send("POST", "/save_manual_profile", body)
        if response is None or not response.is_success:
            logger.warning("Failed to save profile %s", profile.get("profile_name"))
            return False
        logger.info("Profile saved: %s", profile.get("profile_name"))
        return True

    # ── Catalog and locations ─────────────────────────────────────────────────

    async def get_profile_names(self) -> Optional[ProfileNamesResponse]:
        data = await self._get_json("/get_profile_names")
        if data is None:
            return None
        try:
            return ProfileNamesResponse.model_validate(data)
        except ValidationError as exc:
            logger.warning("Malformed profile names: %s", exc)
            return None

    async def get_profile_data(self) -> Optional[ProfileDataResponse]:
        data = await self._get_json("/get_profile_data")
        if data is None:
            return None
        try:
            return ProfileDataResponse.model_validate(data)
        except ValidationError as exc:
            logger.warning("Malformed profile data: %s", exc)
            return None

    async def get_wind_locations(self) -> List[Tuple[str, float]]:
        data = await self._get_json("/get_wind_locations")
        if data is None:
            return []
        try:
            return list(WindLocationsResponse.model_validate(data).locations)
        except ValidationError as exc:
            logger.warning("Malformed wind locations: %s", exc)
            return []

    # ── Document consumers ────────────────────────────────────────────────────

    async def check_figures(self, yaml_content: str) -> FigureCheckResponse:
        body = DocumentRequest(yaml_content=yaml_content).model_dump()
        response = await self._send("POST", "/check_figures", body)
        if response is None:
            return FigureCheckResponse(success=False, error=MSG_ERROR)
        try:
            parsed = FigureCheckResponse.model_validate(response.json())
        except (ValueError, ValidationError):
            return FigureCheckResponse(success=False, error=MSG_ERROR)
        if not response.is_success:
            return FigureCheckResponse(success=False, error=parsed.error or MSG_FAILED)
        return parsed

    async def generate_report(self, yaml_content: str, summary: bool = False) -> Optional[bytes]:
        """Binary report, or None when the collaborator fails."""
        path = "/generate_summary_report" if summary else "/generate_report"
        body = DocumentRequest(yaml_content=yaml_content).model_dump()
        response = await self._send("POST", path, body)
        if response is None or not response.is_success:
            logger.warning("Report generation failed (%s)", path)
            return None
        return response.content
