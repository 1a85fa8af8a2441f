"""Attribute-driven placement rules.

A record becomes a :class:`PlacementDirective` by

* looking its category (tree genus) up in an :class:`AssetCatalog`,
* dividing crown diameter and height by the reference asset's axis lengths,
* pinning elevation to the caller's spawn height.
"""
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional

from .errors import ConfigurationError, InvalidNumericAttribute, MappingError, MissingAttribute
from .models import (
    FeatureRecord,
    GeoPosition,
    MappingBatch,
    MappingContext,
    MappingPolicy,
    PlacementDirective,
    Scale,
    SkippedRecord,
)
from .utils.logging import get_logger

logger = get_logger(__name__)

_NUMBER_PATTERN = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)
# Decimal comma ("4,5"); a comma followed by exactly three digits reads as a thousands separator
_DECIMAL_COMMA_PATTERN = re.compile(r"[+-]?\d+,(?!\d{3}$)\d+", re.ASCII)


@dataclass(frozen=True)
class AssetResolution:
    asset_key: Optional[str]
    matched: bool


@dataclass
class AssetCatalog:
    """Category to asset lookup with a declared fallback for unknown categories."""

    assets: Dict[str, str] = field(default_factory=dict)
    fallback: Optional[str] = None
    case_insensitive: bool = True

    def __post_init__(self):
        self._index = {self._normalise(name): key for name, key in self.assets.items()}

    def _normalise(self, category: str) -> str:
        category = category.strip()
        return category.upper() if self.case_insensitive else category

    def resolve(self, category: str) -> AssetResolution:
        asset_key = self._index.get(self._normalise(category))
        if asset_key is None:
            return AssetResolution(asset_key=self.fallback, matched=False)
        return AssetResolution(asset_key=asset_key, matched=True)


@dataclass(frozen=True)
class MappingRules:
    category_field: str = "gattung"
    width_field: str = "kronedurch"
    height_field: str = "baumhoehe"


def _positive_length(name: str, value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(number) or number <= 0:
        raise ConfigurationError(f"{name} must be a positive number, got {value!r}")
    return number


class PlacementMapper:
    def __init__(self, catalog: Optional[AssetCatalog] = None, rules: Optional[MappingRules] = None):
        self.catalog = catalog or AssetCatalog()
        self.rules = rules or MappingRules()

    def _required(self, attributes: Mapping[str, Optional[str]], name: str) -> str:
        value = attributes.get(name)
        if value is None or not str(value).strip():
            raise MissingAttribute(name)
        return str(value).strip()

    def _numeric(self, attributes: Mapping[str, Optional[str]], name: str) -> float:
        raw = self._required(attributes, name)
        if _NUMBER_PATTERN.fullmatch(raw):
            number = float(raw)
        elif _DECIMAL_COMMA_PATTERN.fullmatch(raw):
            number = float(raw.replace(",", "."))
        else:
            raise InvalidNumericAttribute(name, raw)
        if not math.isfinite(number) or number <= 0:
            raise InvalidNumericAttribute(name, raw)
        return number

    @staticmethod
    def _scale_factor(name: str, value: float, reference: float) -> float:
        factor = value / reference
        if not math.isfinite(factor) or factor <= 0:
            raise InvalidNumericAttribute(name, value)
        return factor

    def map(
        self,
        record: FeatureRecord,
        context: MappingContext,
        sequence: Optional[int] = None,
    ) -> PlacementDirective:
        """Map one record; raises ``MappingError`` subclasses on bad attributes."""
        reference_width = _positive_length("reference_width", context.reference_width)
        reference_height = _positive_length("reference_height", context.reference_height)

        attributes = record.attributes
        category = self._required(attributes, self.rules.category_field)
        width = self._numeric(attributes, self.rules.width_field)
        height = self._numeric(attributes, self.rules.height_field)
        scale_xz = self._scale_factor(self.rules.width_field, width, reference_width)
        scale_y = self._scale_factor(self.rules.height_field, height, reference_height)

        resolution = self.catalog.resolve(category)
        if not resolution.matched:
            logger.debug(
                "No asset for category, using fallback",
                extra={'category': category, 'fallback_asset': resolution.asset_key},
            )

        display_name = category if sequence is None else f"{category}_{sequence}"

        return PlacementDirective(
            position=GeoPosition(
                longitude=record.longitude,
                latitude=record.latitude,
                elevation=context.spawn_height,
                spatial_reference_id=context.spatial_reference_id,
            ),
            scale=Scale(x=scale_xz, y=scale_y, z=scale_xz),
            display_name=display_name,
            category=category,
            asset_key=resolution.asset_key,
            asset_matched=resolution.matched,
        )

    def map_batch(
        self,
        records: Iterable[FeatureRecord],
        context: MappingContext,
        policy: MappingPolicy = MappingPolicy.SKIP,
    ) -> MappingBatch:
        """Map records in order.

        With ``SKIP`` a failing record is recorded in ``skipped`` and mapping
        continues; with ``ABORT`` the first ``MappingError`` propagates.
        Configuration errors always propagate.
        """
        batch = MappingBatch()
        for index, record in enumerate(records):
            try:
                directive = self.map(record, context, sequence=len(batch.directives))
            except MappingError as exc:
                if policy == MappingPolicy.ABORT:
                    raise
                logger.warning(
                    f"Skipping feature {index}: {exc}",
                    extra={'feature_index': index, 'field': exc.field},
                )
                batch.skipped.append(
                    SkippedRecord(
                        index=index,
                        reason=str(exc),
                        error_type=type(exc).__name__,
                        field=exc.field,
                    )
                )
                continue
            batch.directives.append(directive)

        logger.info(
            f"Mapped {len(batch.directives)} features",
            extra={'skipped': len(batch.skipped)},
        )
        return batch
