"""
Survival Evaluation Module

Correlates cluster assignments with clinical outcome:
- Kaplan–Meier survival curves per cluster
- Log-rank test across all clusters (the reported p-value) and pairwise
- Cox proportional hazards model with cluster as a categorical covariate

Clinical data is a DataFrame with columns [sample_id, OS_time, OS_event];
OS_time is in months, OS_event is True when the event was observed.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

import numpy as np
import pandas as pd
from lifelines import CoxPHFitter, KaplanMeierFitter
from lifelines.exceptions import ConvergenceError
from lifelines.statistics import logrank_test, multivariate_logrank_test

from ..exceptions import (
    InsufficientSurvivalDataError,
    InvalidDataError,
    MissingClinicalDataError,
)
from .summary import as_assignment_series

ID_COL = "sample_id"
TIME_COL = "OS_time"
EVENT_COL = "OS_event"
CLUSTER_COL = "cluster"


@dataclass(frozen=True)
class ClinicalRecord:
    """Survival time in months and whether the event was observed."""

    time: float
    event: bool


@dataclass
class SurvivalResult:
    """Log-rank p-value, fitted curves and Cox summary for one assignment."""

    p_value: float
    test_statistic: float
    km_curves: Dict[int, pd.DataFrame]
    median_survival: Dict[int, float]
    pairwise_logrank: pd.DataFrame
    cox_summary: Optional[pd.DataFrame]
    cox_p_value: Optional[float]
    cox_error: Optional[str]
    n_samples: int
    n_events: int
    n_dropped: int = 0
    dropped_samples: List[str] = field(default_factory=list)
    cluster_counts: Dict[int, Dict[str, int]] = field(default_factory=dict)


def clinical_frame_from_records(records: Mapping[str, ClinicalRecord]) -> pd.DataFrame:
    """Build the clinical DataFrame from a mapping sample ID -> ClinicalRecord."""
    return pd.DataFrame({
        ID_COL: [str(sample) for sample in records],
        TIME_COL: [float(rec.time) for rec in records.values()],
        EVENT_COL: [bool(rec.event) for rec in records.values()],
    })


def _coerce_events(events):
    if pd.api.types.is_bool_dtype(events):
        return events.astype(bool)
    if events.map(lambda v: isinstance(v, (bool, np.bool_))).all():
        return events.astype(bool)
    numeric = pd.to_numeric(events, errors="coerce")
    bad = ~numeric.isin([0, 1])
    if bad.any():
        raise InvalidDataError(
            f"{EVENT_COL} must be boolean or 0/1, got {events[bad].unique().tolist()[:5]}"
        )
    return numeric.astype(bool)


def prepare_survival_dataframe(assignment, clinical_df, verbose=True):
    """
    Join cluster assignments with clinical survival data.

    Clustered samples without a usable clinical record are dropped and
    reported instead of aborting the analysis.

    Args:
        assignment: Series sample ID -> cluster label (or a ClusterResult)
        clinical_df: DataFrame with sample_id, OS_time, OS_event

    Returns:
        tuple: (merged DataFrame [sample_id, OS_time, OS_event, cluster], dropped sample IDs)

    Raises:
        InvalidDataError: Missing columns, duplicated IDs, non-positive times
        MissingClinicalDataError: No clustered sample has a clinical record
    """
    missing_cols = [c for c in (ID_COL, TIME_COL, EVENT_COL) if c not in clinical_df.columns]
    if missing_cols:
        raise InvalidDataError(f"Clinical dataframe missing required columns: {missing_cols}")

    clinical = clinical_df[[ID_COL, TIME_COL, EVENT_COL]].copy()
    clinical[ID_COL] = clinical[ID_COL].astype(str)
    if clinical[ID_COL].duplicated().any():
        dupes = clinical.loc[clinical[ID_COL].duplicated(), ID_COL].tolist()
        raise InvalidDataError(f"Clinical data lists samples more than once: {dupes[:5]}")

    # Rows with no survival values count as missing records.
    clinical = clinical.dropna(subset=[TIME_COL, EVENT_COL])
    clinical[TIME_COL] = pd.to_numeric(clinical[TIME_COL], errors="coerce")
    if clinical[TIME_COL].isna().any() or not np.isfinite(clinical[TIME_COL]).all():
        raise InvalidDataError(f"{TIME_COL} contains non-numeric or non-finite values")
    if (clinical[TIME_COL] <= 0).any():
        bad = clinical.loc[clinical[TIME_COL] <= 0, ID_COL].tolist()
        raise InvalidDataError(f"{TIME_COL} must be positive; offending samples: {bad[:5]}")
    clinical[EVENT_COL] = _coerce_events(clinical[EVENT_COL])

    series = as_assignment_series(assignment)
    clusters = pd.DataFrame({ID_COL: series.index.astype(str), CLUSTER_COL: series.to_numpy()})

    known = set(clinical[ID_COL])
    dropped = [s for s in clusters[ID_COL] if s not in known]

    if verbose:
        print(f"\n[Merge]")
        print(f"  Cluster assignments: {len(clusters)} samples")
        print(f"  Clinical data: {len(clinical)} samples")

    if len(dropped) == len(clusters):
        raise MissingClinicalDataError(
            f"No clustered sample has clinical data. Cluster IDs: {clusters[ID_COL].tolist()[:3]}, "
            f"Clinical IDs: {clinical[ID_COL].tolist()[:3]}",
            missing=dropped,
        )
    if dropped and verbose:
        print(f"[Warning] Dropped {len(dropped)} clustered samples without clinical data: {dropped[:5]}")

    df = clusters.merge(clinical, on=ID_COL, how="inner")
    df[CLUSTER_COL] = df[CLUSTER_COL].astype(int)

    if verbose:
        print(f"  After merge: {len(df)} samples")

    return df, dropped


def fit_kaplan_meier(df, cluster_col=CLUSTER_COL, time_col=TIME_COL, event_col=EVENT_COL):
    """
    Kaplan–Meier curve per cluster.

    Returns:
        tuple: (dict label -> DataFrame[time, survival_probability],
                dict label -> median survival time)
    """
    curves = {}
    medians = {}
    km = KaplanMeierFitter()
    for group in sorted(df[cluster_col].unique()):
        mask = df[cluster_col] == group
        km.fit(df.loc[mask, time_col], df.loc[mask, event_col],
               label=f"Cluster {group} (n={int(mask.sum())})")
        sf = km.survival_function_
        curves[int(group)] = pd.DataFrame({
            "time": sf.index.to_numpy(dtype=float),
            "survival_probability": sf.iloc[:, 0].to_numpy(dtype=float),
        })
        medians[int(group)] = float(km.median_survival_time_)
    return curves, medians


def run_logrank(df, cluster_col=CLUSTER_COL, time_col=TIME_COL, event_col=EVENT_COL):
    """
    Run pairwise log-rank tests between all clusters.
    """
    clusters = sorted(df[cluster_col].unique())
    results = []

    for i in range(len(clusters)):
        for j in range(i + 1, len(clusters)):
            c1 = clusters[i]
            c2 = clusters[j]

            g1 = df[df[cluster_col] == c1]
            g2 = df[df[cluster_col] == c2]

            test = logrank_test(
                g1[time_col],
                g2[time_col],
                event_observed_A=g1[event_col],
                event_observed_B=g2[event_col]
            )

            results.append({
                "cluster_A": int(c1),
                "cluster_B": int(c2),
                "p_value": float(test.p_value),
                "statistic": float(test.test_statistic)
            })

    return pd.DataFrame(results, columns=["cluster_A", "cluster_B", "p_value", "statistic"])


def run_cox(df, duration_col=TIME_COL, event_col=EVENT_COL, cluster_col=CLUSTER_COL,
            penalizer=0.0):
    """
    Cox proportional hazards model with cluster as a categorical covariate.

    The lowest cluster label is the reference level; every other label gets
    an indicator column ``cluster_<label>``.

    Returns:
        CoxPHFitter
    """
    dummies = pd.get_dummies(df[cluster_col], prefix=cluster_col, drop_first=True, dtype=float)
    cox_df = pd.concat([df[[duration_col, event_col]].reset_index(drop=True),
                        dummies.reset_index(drop=True)], axis=1)
    cox_df[event_col] = cox_df[event_col].astype(int)

    cph = CoxPHFitter(penalizer=penalizer)
    cph.fit(cox_df, duration_col=duration_col, event_col=event_col)
    return cph


def survival_analysis(assignment, clinical_df, cox_penalizer=0.0, verbose=True) -> SurvivalResult:
    """
    Full survival pipeline: merge -> Kaplan–Meier -> log-rank -> Cox.

    Args:
        assignment: Series sample ID -> cluster label (or a ClusterResult)
        clinical_df: DataFrame with sample_id, OS_time, OS_event
        cox_penalizer: L2 penalizer passed to CoxPHFitter
        verbose: Print the analysis summary

    Returns:
        SurvivalResult

    Raises:
        MissingClinicalDataError: No clustered sample has clinical data
        InsufficientSurvivalDataError: Fewer than 2 non-empty clusters or no events
    """
    df, dropped = prepare_survival_dataframe(assignment, clinical_df, verbose=verbose)

    n_groups = df[CLUSTER_COL].nunique()
    n_events = int(df[EVENT_COL].sum())
    if n_groups < 2:
        raise InsufficientSurvivalDataError(
            f"Survival comparison needs at least 2 non-empty clusters, got {n_groups}"
        )
    if n_events == 0:
        raise InsufficientSurvivalDataError("No observed events among the clustered samples")

    if verbose:
        print("\n=== SURVIVAL ANALYSIS ===")
        print(f"Patients available: {len(df)}")
        print(f"Number of clusters: {n_groups}")
        print(f"Cluster sizes: {df[CLUSTER_COL].value_counts().sort_index().to_dict()}")
        print(f"Observed events: {n_events}")

    overall = multivariate_logrank_test(df[TIME_COL], df[CLUSTER_COL], df[EVENT_COL])
    p_value = float(max(overall.p_value, np.finfo(float).tiny))

    curves, medians = fit_kaplan_meier(df)
    log_df = run_logrank(df)

    cox_summary = None
    cox_p = None
    cox_error = None
    try:
        cph = run_cox(df, penalizer=cox_penalizer)
        cox_summary = cph.summary
        cox_p = float(cph.log_likelihood_ratio_test().p_value)
    except (ConvergenceError, np.linalg.LinAlgError) as e:
        cox_error = str(e)
        print(f"[Warning] Cox model did not converge: {e}")

    counts = {
        int(label): {"n": int(len(group)), "events": int(group[EVENT_COL].sum())}
        for label, group in df.groupby(CLUSTER_COL)
    }

    if verbose:
        print(f"\nLog-rank test across clusters: chi2={overall.test_statistic:.4f}, p={p_value:.4g}")
        if len(log_df):
            print("Log-rank pairwise results:")
            print(log_df.to_string(index=False))
        if cox_summary is not None:
            print("\nCox Model Summary:")
            print(cox_summary[["coef", "exp(coef)", "p"]])

    return SurvivalResult(
        p_value=p_value,
        test_statistic=float(overall.test_statistic),
        km_curves=curves,
        median_survival=medians,
        pairwise_logrank=log_df,
        cox_summary=cox_summary,
        cox_p_value=cox_p,
        cox_error=cox_error,
        n_samples=int(len(df)),
        n_events=n_events,
        n_dropped=len(dropped),
        dropped_samples=list(dropped),
        cluster_counts=counts,
    )
