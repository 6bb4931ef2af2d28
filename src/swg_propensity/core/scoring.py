"""Propensity response parsing.

Turns the JSON body of the scoring endpoint into a typed PropensityScore.
The response is untrusted: anything malformed becomes a well-formed error
result instead of an exception.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from .models import (
    ProductError,
    ProductScore,
    PropensityBody,
    PropensityHeader,
    PropensityScore,
    Score,
    ScoreDetail,
)

logger = logging.getLogger(__name__)

# score_type reported by the server for bucketed scores
BUCKETED_SCORE_TYPE = 2

NO_VALID_RESPONSE = "No valid response"
MALFORMED_ENTRY = "Malformed score entry"


def _parse_score_detail(result: Mapping[str, Any]) -> ScoreDetail:
    """Parse one entry of the `scores` array."""
    if result.get("score"):
        return ProductScore(
            product=result.get("product"),
            score=Score(
                value=result["score"],
                bucketed=result.get("score_type") == BUCKETED_SCORE_TYPE,
            ),
        )
    return ProductError(
        product=result.get("product"),
        error=result.get("error_message"),
    )


def parse_propensity_response(response: Any) -> PropensityScore:
    """Convert a scoring response body into a PropensityScore.

    - No header: not ok, with a generic error message.
    - header.ok false: not ok, carrying the server's `error`.
    - header.ok true: one score detail per entry of `scores`, in order.
    """
    if not isinstance(response, Mapping) or not response.get("header"):
        return PropensityScore(
            header=PropensityHeader(ok=False),
            body=PropensityBody(error=NO_VALID_RESPONSE),
        )

    status = response["header"]
    if not isinstance(status, Mapping) or not status.get("ok"):
        return PropensityScore(
            header=PropensityHeader(ok=False),
            body=PropensityBody(error=response.get("error")),
        )

    scores = response.get("scores")
    if not isinstance(scores, list):
        scores = []
    details: list[ScoreDetail] = []
    for result in scores:
        if not isinstance(result, Mapping):
            logger.warning("Malformed score entry: %r", result)
            details.append(ProductError(error=MALFORMED_ENTRY))
            continue
        try:
            details.append(_parse_score_detail(result))
        except ValidationError as exc:
            logger.warning("Unparseable score in entry %r: %s", result, exc)
            details.append(ProductError(
                product=result.get("product"),
                error=f"Invalid score value({result.get('score')!r})",
            ))

    return PropensityScore(
        header=PropensityHeader(ok=True),
        body=PropensityBody(scores=details),
    )
