# vision_avatar/services/responses.py
"""
Tolerant parsing of recognition service payloads.

The service is inconsistent about capitalisation ("EmotionsAttention" vs
"emotionsAttention"), about whether gender is a bare label or an object, and
about the similarity scale. These models absorb the variations and turn the
payload into the typed results the rest of the package works with.
"""
from typing import Any, Dict, List, Optional, Type, TypeVar, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from .oracle import (
    EmotionAttention,
    LivenessVerdict,
    OracleResponseError,
    RecognitionResult,
    ResultSource,
)
from ..utils.state import Demographics

ModelT = TypeVar("ModelT", bound=BaseModel)

_MATCH_SOURCES = {"search", "match", "matched"}
_INDEX_SOURCES = {"index", "indexed"}


def _aliases(*names: str) -> AliasChoices:
    return AliasChoices(*names)


class _Tolerant(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


def parse_payload(model: Type[ModelT], payload: Any) -> ModelT:
    """Validate payload against model, mapping failures to OracleResponseError"""
    if not isinstance(payload, dict):
        raise OracleResponseError(f"Expected a JSON object, got {type(payload).__name__}")
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise OracleResponseError(f"Malformed {model.__name__}: {e}") from e


def normalise_similarity(value: Optional[float]) -> float:
    """Bring a 0-1 or 0-100 score onto 0-1"""
    if value is None:
        return 0.0
    if value > 1.0:
        value = value / 100.0
    return max(0.0, min(1.0, value))


class FaceMatch(_Tolerant):
    confidence: Optional[float] = Field(None, validation_alias=_aliases("confidence", "Confidence"))
    similarity: Optional[float] = Field(None, validation_alias=_aliases("similarity", "Similarity"))


class SearchOrIndexResponse(_Tolerant):
    result_source: Optional[str] = Field(
        None, validation_alias=_aliases("resultSource", "ResultSource", "result_source")
    )
    face_id: Optional[str] = Field(None, validation_alias=_aliases("faceId", "FaceId", "face_id"))
    similarity: Optional[float] = Field(None, validation_alias=_aliases("similarity", "Similarity"))
    face: Optional[FaceMatch] = Field(None, validation_alias=_aliases("face", "Face"))

    def to_result(self) -> Optional[RecognitionResult]:
        if not self.face_id:
            # No face in frame, nothing to search or index
            return None

        source = (self.result_source or "").strip().lower()
        if source in _MATCH_SOURCES:
            result_source = ResultSource.MATCHED
        elif source in _INDEX_SOURCES:
            result_source = ResultSource.INDEXED
        else:
            raise OracleResponseError(f"Unknown resultSource: {self.result_source!r}")

        similarity = self.similarity
        if similarity is None and self.face is not None:
            similarity = self.face.similarity if self.face.similarity is not None else self.face.confidence
        return RecognitionResult(
            result_source=result_source,
            identity_id=self.face_id,
            similarity=normalise_similarity(similarity),
        )


class AgePrediction(_Tolerant):
    prediction: float = Field(validation_alias=_aliases("prediction", "Prediction"))
    uncertainty: float = Field(0.0, validation_alias=_aliases("uncertainty", "Uncertainty"))


class AgeFace(_Tolerant):
    age: Optional[AgePrediction] = Field(None, validation_alias=_aliases("age", "Age"))


class AgeResponse(_Tolerant):
    faces: List[AgeFace] = Field(default_factory=list, validation_alias=_aliases("faces", "Faces"))

    def primary(self) -> Optional[AgePrediction]:
        if not self.faces:
            return None
        return self.faces[0].age


class GenderPrediction(_Tolerant):
    prediction: str = Field(validation_alias=_aliases("prediction", "Prediction", "value"))
    confidence: float = Field(0.0, validation_alias=_aliases("confidence", "Confidence"))


class GenderFace(_Tolerant):
    gender: Optional[Union[str, GenderPrediction]] = Field(
        None, validation_alias=_aliases("gender", "Gender")
    )


class GenderResponse(_Tolerant):
    faces: List[GenderFace] = Field(default_factory=list, validation_alias=_aliases("faces", "Faces"))

    def primary(self) -> Optional[GenderPrediction]:
        if not self.faces or self.faces[0].gender is None:
            return None
        gender = self.faces[0].gender
        if isinstance(gender, str):
            # A bare label comes without a confidence
            return GenderPrediction(prediction=gender, confidence=1.0)
        return gender


def build_demographics(age: AgeResponse, gender: GenderResponse) -> Optional[Demographics]:
    """Both halves are needed, a lone age or gender is dropped"""
    age_prediction = age.primary()
    gender_prediction = gender.primary()
    if age_prediction is None or gender_prediction is None:
        return None
    return Demographics(
        age_estimate=age_prediction.prediction,
        age_min=max(0.0, age_prediction.prediction - age_prediction.uncertainty),
        age_max=age_prediction.prediction + age_prediction.uncertainty,
        gender_value=gender_prediction.prediction,
        gender_confidence=gender_prediction.confidence,
    )


class EmotionAttentionResponse(_Tolerant):
    emotions: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=_aliases("EmotionsAttention", "emotionsAttention", "emotions_attention"),
    )

    def to_result(self) -> Optional[EmotionAttention]:
        if not self.emotions:
            return None
        scores: Dict[str, float] = {}
        for key, value in self.emotions.items():
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                continue
            scores[key] = float(value)
        return EmotionAttention(
            scores=scores,
            has_face=bool(self.emotions.get("hasFace", False)),
            presence=bool(self.emotions.get("presence", False)),
            eyes_on_screen=bool(self.emotions.get("eyesOnScreen", False)),
            attention=bool(self.emotions.get("attention", False)),
        )


class LivenessResponse(_Tolerant):
    is_live: bool = Field(validation_alias=_aliases("isLive", "IsLive", "is_live"))
    confidence: float = Field(0.0, validation_alias=_aliases("confidence", "Confidence"))

    def to_result(self) -> LivenessVerdict:
        return LivenessVerdict(is_live=self.is_live, confidence=normalise_similarity(self.confidence))
