from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol, Sequence, Union

from location_filter.drafts import IsochroneDraft
from location_filter.errors import GeometryValidationError, ServiceError
from location_filter.geometry.geojson import feature_collection, polygon_feature
from location_filter.geometry.primitives import (
    IsochroneSettings,
    Point,
    Polygon,
    coerce_point,
    polygon_from_ring,
    step_preset,
    validate_isochrone,
    validate_minutes,
    validate_polygon,
    validate_profile,
)
from location_filter.map_layer.styles import profile_color, profile_label


logger = logging.getLogger("lf.isochrone")

TIME_STEPS: Sequence[int] = (5, 10, 15, 30, 45, 60)
DEFAULT_PROFILE = "walking"
DEFAULT_MINUTES = 15


class RingFetcher(Protocol):
    async def fetch_ring(self, settings: IsochroneSettings) -> Sequence[Sequence[float]]: ...


@dataclass(frozen=True)
class IsochroneFailure:
    """Typed non-exceptional outcome of a travel-time request.

    reason: superseded | http_status | transport | malformed | empty
    """

    reason: str
    message: str = ""
    status: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"reason": self.reason, "message": self.message}
        if self.status is not None:
            out["status"] = self.status
        return out


IsochroneResult = Union[Polygon, IsochroneFailure]


def _default_client() -> RingFetcher:
    from location_filter.isochrone.client import MapboxIsochroneClient

    return MapboxIsochroneClient()


class IsochroneEngine:
    """Builds travel-time polygons into an IsochroneDraft.

    Every request takes a new generation number; only the response for the
    current generation may write the draft.
    """

    def __init__(
        self,
        draft: Optional[IsochroneDraft] = None,
        *,
        client: Optional[RingFetcher] = None,
        on_change: Optional[Callable[[IsochroneDraft], None]] = None,
    ) -> None:
        self.draft = draft if draft is not None else IsochroneDraft()
        self.client = client if client is not None else _default_client()
        self.on_change = on_change
        self.center: Optional[Point] = self.draft.isochrone.center if self.draft.isochrone else None
        self.profile = self.draft.isochrone.profile if self.draft.isochrone else DEFAULT_PROFILE
        self.minutes = self.draft.isochrone.minutes if self.draft.isochrone else DEFAULT_MINUTES
        self.last_failure: Optional[IsochroneFailure] = None
        self._generation = 0
        self._task: Optional["asyncio.Task[IsochroneResult]"] = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def task(self) -> Optional["asyncio.Task[IsochroneResult]"]:
        return self._task

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self.draft)

    def _prepare(
        self,
        center: Any = None,
        profile: Optional[str] = None,
        minutes: Optional[int] = None,
    ) -> IsochroneSettings:
        raw_center = center if center is not None else self.center
        if raw_center is None:
            raise GeometryValidationError("center is required", field="center")
        settings = IsochroneSettings(
            center=coerce_point(raw_center),
            profile=profile if profile is not None else self.profile,
            minutes=minutes if minutes is not None else self.minutes,
        )
        return validate_isochrone(settings)

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    async def _run(self, settings: IsochroneSettings, generation: int) -> IsochroneResult:
        try:
            ring = await self.client.fetch_ring(settings)
            polygon = polygon_from_ring(
                ring, name=f"{profile_label(settings.profile)} {settings.minutes} min"
            )
            validate_polygon(polygon)
        except ServiceError as e:
            failure = IsochroneFailure(e.reason, str(e), status=e.status)
        except GeometryValidationError as e:
            failure = IsochroneFailure("malformed", f"isochrone geometry rejected: {e}")
        else:
            failure = None

        if generation != self._generation:
            logger.debug("discarding superseded isochrone generation=%s", generation)
            return IsochroneFailure("superseded", "a newer isochrone request replaced this one")
        if failure is not None:
            logger.warning("isochrone failed: %s (%s)", failure.message, failure.reason)
            self.last_failure = failure
            return failure

        self.draft.isochrone = settings
        self.draft.polygon = polygon
        self.last_failure = None
        logger.info(
            "isochrone ready profile=%s minutes=%s vertices=%s",
            settings.profile,
            settings.minutes,
            len(polygon.points),
        )
        self._notify()
        return polygon

    async def compute(
        self,
        center: Any = None,
        profile: Optional[str] = None,
        minutes: Optional[int] = None,
    ) -> IsochroneResult:
        """Validate, fetch and (if still current) store the isochrone.

        Invalid input raises GeometryValidationError before any request.
        """

        settings = self._prepare(center, profile, minutes)
        self.center, self.profile, self.minutes = settings.center, settings.profile, settings.minutes
        return await self._run(settings, self._next_generation())

    def request(
        self,
        center: Any = None,
        profile: Optional[str] = None,
        minutes: Optional[int] = None,
    ) -> "asyncio.Task[IsochroneResult]":
        """Schedule a compute on the running loop, cancelling the one in flight."""

        settings = self._prepare(center, profile, minutes)
        self.center, self.profile, self.minutes = settings.center, settings.profile, settings.minutes
        if self.pending:
            self._task.cancel()  # type: ignore[union-attr]
        self._task = asyncio.get_running_loop().create_task(
            self._run(settings, self._next_generation())
        )
        return self._task

    def cancel(self) -> None:
        self._generation += 1
        if self.pending:
            logger.debug("cancelling in-flight isochrone")
            self._task.cancel()  # type: ignore[union-attr]
        self._task = None

    def set_center(self, center: Any) -> "asyncio.Task[IsochroneResult]":
        return self.request(center=center)

    # Parameter changes re-request only once a center has been picked.
    def set_profile(self, profile: str) -> Optional["asyncio.Task[IsochroneResult]"]:
        if self.center is None:
            self.profile = validate_profile(profile)
            return None
        return self.request(profile=profile)

    def set_minutes(self, minutes: int) -> Optional["asyncio.Task[IsochroneResult]"]:
        if self.center is None:
            self.minutes = validate_minutes(minutes)
            return None
        return self.request(minutes=minutes)

    def step_minutes(self, *, up: bool) -> Optional["asyncio.Task[IsochroneResult]"]:
        return self.set_minutes(int(step_preset(TIME_STEPS, self.minutes, up=up)))

    def clear(self) -> None:
        self.cancel()
        self.draft.reset()
        self.center = None
        self.last_failure = None
        self._notify()

    def preview_features(self) -> Dict[str, Any]:
        if self.draft.polygon is None or self.draft.isochrone is None:
            return feature_collection([])
        profile = self.draft.isochrone.profile
        return feature_collection(
            [
                polygon_feature(
                    self.draft.polygon,
                    profile=profile,
                    minutes=self.draft.isochrone.minutes,
                    color=profile_color(profile),
                )
            ]
        )
