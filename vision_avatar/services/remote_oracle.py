# vision_avatar/services/remote_oracle.py
"""Remote face recognition oracle backed by the VerifEye HTTP APIs"""
import asyncio
import base64
import logging
from typing import Any, Dict, Iterable, Optional

import httpx

from .oracle import (
    EmotionAttention,
    FaceOracle,
    LivenessVerdict,
    OracleResponseError,
    OracleTransportError,
    RecognitionResult,
    check_threshold,
)
from .responses import (
    AgeResponse,
    EmotionAttentionResponse,
    GenderResponse,
    LivenessResponse,
    SearchOrIndexResponse,
    build_demographics,
    parse_payload,
)
from ..utils.config import OracleConfig
from ..utils.state import Demographics

logger = logging.getLogger(__name__)


def _encode(blob: bytes) -> str:
    return base64.b64encode(blob).decode("ascii")


class RemoteFaceOracle(FaceOracle):
    """
    Talks to the four recognition services (face recognition, liveness,
    emotion/attention, demographics) over HTTPS.

    Transport failures and non-2xx answers raise OracleTransportError,
    payloads that do not parse raise OracleResponseError.
    """

    def __init__(
        self,
        config: OracleConfig,
        *,
        client: Optional[httpx.AsyncClient] = None
    ):
        if not config.api_key:
            raise ValueError("RemoteFaceOracle needs an API key")
        self._config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
            timeout=httpx.Timeout(config.timeout, connect=5.0)
        )
        self._urls = {
            "face": config.base_url("face-recognition"),
            "liveness": config.base_url("liveness-detection"),
            "emotion": config.base_url("emotion-attention"),
            "demographics": config.base_url("demographic-estimation"),
        }

    async def _post(
        self,
        service: str,
        path: str,
        body: Dict[str, Any],
        accept_status: Iterable[int] = ()
    ) -> httpx.Response:
        url = f"{self._urls[service]}{path}"
        try:
            response = await self._client.post(
                url,
                json=body,
                headers={"Authorization": f"ApiKey {self._config.api_key}"}
            )
        except httpx.HTTPError as e:
            raise OracleTransportError(f"{path} request failed: {e}") from e

        if response.status_code >= 400 and response.status_code not in accept_status:
            raise OracleTransportError(f"{path} returned HTTP {response.status_code}: {response.text[:200]}")
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise OracleResponseError(f"Unparseable response from {response.request.url}: {e}") from e

    async def create_collection(self, collection_id: str, description: str = "") -> bool:
        logger.info(f"Creating collection: {collection_id}")
        response = await self._post(
            "face",
            "/collection/create",
            {"collectionId": collection_id, "description": description},
            accept_status=(409,)
        )
        if response.status_code == 409:
            logger.info(f"Collection already exists: {collection_id}")
        return True

    async def search_or_index(
        self,
        frame: bytes,
        collection_id: str,
        match_threshold: float = 70.0
    ) -> Optional[RecognitionResult]:
        check_threshold(match_threshold)
        response = await self._post(
            "face",
            "/face/search-or-index",
            {
                "image": {"bytes": _encode(frame)},
                "collectionId": collection_id,
                "faceMatchThreshold": match_threshold,
            }
        )
        result = parse_payload(SearchOrIndexResponse, self._json(response)).to_result()
        if result:
            logger.debug(f"Search-or-index: {result.result_source.value} | faceId: {result.identity_id}")
        return result

    async def estimate_demographics(self, frame: bytes) -> Optional[Demographics]:
        body = {"image": {"bytes": _encode(frame)}, "maxFaceCount": 1}
        age_response, gender_response = await asyncio.gather(
            self._post("demographics", "/demographic-estimation/get-age", body),
            self._post("demographics", "/demographic-estimation/get-gender", body),
        )
        age = parse_payload(AgeResponse, self._json(age_response))
        gender = parse_payload(GenderResponse, self._json(gender_response))
        return build_demographics(age, gender)

    async def detect_emotion_attention(self, frame: bytes) -> Optional[EmotionAttention]:
        response = await self._post(
            "emotion",
            "/emotion-attention/detect",
            {"image": {"bytes": _encode(frame)}}
        )
        return parse_payload(EmotionAttentionResponse, self._json(response)).to_result()

    async def check_liveness(self, video: bytes, duration_ms: int) -> LivenessVerdict:
        response = await self._post(
            "liveness",
            "/liveness/check",
            {"video": {"bytes": _encode(video)}, "includeAuditImages": False}
        )
        verdict = parse_payload(LivenessResponse, self._json(response)).to_result()
        logger.info(f"Liveness check ({duration_ms}ms clip): live={verdict.is_live}")
        return verdict

    async def close(self):
        if self._owns_client:
            await self._client.aclose()
