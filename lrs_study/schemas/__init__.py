from __future__ import annotations

from lrs_study.schemas.common import ArtifactBase, ArtifactMixin, clean_nan, utc_now
from lrs_study.schemas.lrs_study import (
    LrsStudyArtifact,
    PeakAnnotationModel,
    ProjectionModel,
    SideSummaryModel,
    STableRowModel,
    TuningRankingModel,
    build_lrs_study_artifact,
    ranking_models,
)

__all__ = [
    "ArtifactBase",
    "ArtifactMixin",
    "LrsStudyArtifact",
    "PeakAnnotationModel",
    "ProjectionModel",
    "STableRowModel",
    "SideSummaryModel",
    "TuningRankingModel",
    "build_lrs_study_artifact",
    "clean_nan",
    "ranking_models",
    "utc_now",
]
