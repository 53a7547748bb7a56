from __future__ import annotations

from typing import Any
from urllib.parse import quote_plus

from fitspo.errors import ScanServiceError
from fitspo.schemas import Detection, OutfitItem, ScanJob


# Detectors disagree on field names; keys are tried in this order.
LABEL_KEYS = ("name", "label", "category")
CONFIDENCE_KEYS = ("confidence", "score")
BBOX_KEYS = ("bbox", "box")

DEFAULT_LABEL = "item"
DEFAULT_SHOP_SEARCH_URL = "https://www.google.com/search?q="


def _first_present(raw: dict[str, Any], keys: tuple[str, ...]) -> tuple[str | None, Any]:
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return key, value
    return None, None


def resolve_detection(raw: dict[str, Any]) -> Detection:
    key, label = _first_present(raw, LABEL_KEYS)
    if key is None:
        label = DEFAULT_LABEL
    elif not isinstance(label, str):
        raise ScanServiceError(f"detection field {key!r} is not a string: {label!r}")

    key, confidence = _first_present(raw, CONFIDENCE_KEYS)
    if key is None:
        confidence = 0.0
    elif isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        raise ScanServiceError(f"detection field {key!r} is not a number: {confidence!r}")

    key, bbox = _first_present(raw, BBOX_KEYS)
    if key is None:
        bbox = []
    elif not isinstance(bbox, (list, tuple)) or not all(
        isinstance(v, (int, float)) and not isinstance(v, bool) for v in bbox
    ):
        raise ScanServiceError(f"detection field {key!r} is not a list of numbers: {bbox!r}")

    return Detection(label=label, confidence=float(confidence), bbox=[float(v) for v in bbox])


def shop_url(label: str, search_url: str = DEFAULT_SHOP_SEARCH_URL) -> str:
    return search_url + quote_plus(label)


def normalize_detections(
    raw_detections: list[dict[str, Any]],
    search_url: str = DEFAULT_SHOP_SEARCH_URL,
) -> list[OutfitItem]:
    items = []
    for i, raw in enumerate(raw_detections):
        detection = resolve_detection(raw)
        items.append(
            OutfitItem(
                id=f"d{i}",
                label=detection.label,
                brand="",
                shop_url=shop_url(detection.label, search_url),
            )
        )
    return items


def normalize_job(job: ScanJob, search_url: str = DEFAULT_SHOP_SEARCH_URL) -> list[OutfitItem]:
    """Map a terminal job's detections to outfit items.

    A failed job or one without output yields an empty list; callers look at
    ``job.status`` to tell "nothing detected" from "job failed".
    """
    if job.status == "failed":
        return []
    return normalize_detections(job.raw_detections, search_url)
